from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Path:
    """A learning path, the top of the content hierarchy."""

    id: UUID
    name: str
    category: str
    is_active: bool = True
    description: str = ""

    @staticmethod
    def new(
        *, name: str, category: str, is_active: bool = True, description: str = ""
    ) -> Path:
        return Path(
            id=uuid4(),
            name=name,
            category=category,
            is_active=is_active,
            description=description,
        )


@dataclass(frozen=True, slots=True)
class Module:
    id: UUID
    path_id: UUID
    order_index: int
    title: str = ""

    @staticmethod
    def new(*, path_id: UUID, order_index: int, title: str = "") -> Module:
        return Module(id=uuid4(), path_id=path_id, order_index=order_index, title=title)


@dataclass(frozen=True, slots=True)
class Activity:
    id: UUID
    module_id: UUID
    order_index: int
    kind: str = "exercise"  # exercise|quiz|tool|reading|...
    title: str = ""

    @staticmethod
    def new(
        *, module_id: UUID, order_index: int, kind: str = "exercise", title: str = ""
    ) -> Activity:
        return Activity(
            id=uuid4(),
            module_id=module_id,
            order_index=order_index,
            kind=kind,
            title=title,
        )
