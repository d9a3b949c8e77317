from __future__ import annotations

from typing import Protocol
from uuid import UUID

from learnprogress.models.content import Activity, Module, Path


class ContentRepo(Protocol):
    """Read access to the content hierarchy (owned by content authoring)."""

    async def get_path(self, path_id: UUID) -> Path | None: ...
    async def get_module(self, module_id: UUID) -> Module | None: ...
    async def get_activity(self, activity_id: UUID) -> Activity | None: ...


class InMemoryContentRepo:
    def __init__(self) -> None:
        self._paths: dict[UUID, Path] = {}
        self._modules: dict[UUID, Module] = {}
        self._activities: dict[UUID, Activity] = {}

    # --- seeding (content authoring stands in for this in production) ---

    def add_path(self, path: Path) -> Path:
        self._paths[path.id] = path
        return path

    def add_module(self, module: Module) -> Module:
        if module.path_id not in self._paths:
            raise KeyError("path not found")
        self._modules[module.id] = module
        return module

    def add_activity(self, activity: Activity) -> Activity:
        if activity.module_id not in self._modules:
            raise KeyError("module not found")
        self._activities[activity.id] = activity
        return activity

    def remove_module(self, module_id: UUID) -> None:
        """Drop a module but keep its activities (simulates a broken hierarchy)."""
        self._modules.pop(module_id, None)

    def remove_path(self, path_id: UUID) -> None:
        """Drop a path but keep its modules."""
        self._paths.pop(path_id, None)

    def clear(self) -> None:
        self._paths.clear()
        self._modules.clear()
        self._activities.clear()

    # --- ContentRepo ---

    async def get_path(self, path_id: UUID) -> Path | None:
        return self._paths.get(path_id)

    async def get_module(self, module_id: UUID) -> Module | None:
        return self._modules.get(module_id)

    async def get_activity(self, activity_id: UUID) -> Activity | None:
        return self._activities.get(activity_id)

    # --- helpers for the in-memory aggregate queries ---

    def lookup_path(self, path_id: UUID) -> Path | None:
        return self._paths.get(path_id)

    def lookup_module(self, module_id: UUID) -> Module | None:
        return self._modules.get(module_id)

    def lookup_activity(self, activity_id: UUID) -> Activity | None:
        return self._activities.get(activity_id)

    def paths(self) -> list[Path]:
        return list(self._paths.values())

    def modules_of(self, path_id: UUID) -> list[Module]:
        return sorted(
            (m for m in self._modules.values() if m.path_id == path_id),
            key=lambda m: m.order_index,
        )

    def activities_of(self, module_id: UUID) -> list[Activity]:
        return sorted(
            (a for a in self._activities.values() if a.module_id == module_id),
            key=lambda a: a.order_index,
        )
