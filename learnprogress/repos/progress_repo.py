from __future__ import annotations

import threading
from typing import Protocol
from uuid import UUID

from learnprogress.models.progress import ActivityProgress, ModuleProgress, ProgressUpdate
from learnprogress.services.rules import merge_activity_progress


class ProgressRepo(Protocol):
    async def upsert_activity_progress(
        self,
        learner_id: UUID,
        activity_id: UUID,
        update: ProgressUpdate,
        now: int,
    ) -> ActivityProgress:
        """Insert the row if absent, otherwise merge the update into it.

        Must be atomic per (learner_id, activity_id): concurrent callers
        never lose each other's time_spent_delta.
        """
        ...

    async def get_activity_progress(
        self, learner_id: UUID, activity_id: UUID
    ) -> ActivityProgress | None: ...

    async def lock_module_progress(
        self, learner_id: UUID, module_id: UUID
    ) -> ModuleProgress | None:
        """Return the current module row, holding it until the transaction ends."""
        ...

    async def save_module_progress(self, row: ModuleProgress) -> ModuleProgress: ...

    async def get_module_progress(
        self, learner_id: UUID, module_id: UUID
    ) -> ModuleProgress | None: ...


class InMemoryProgressRepo:
    """Dict-backed progress store.

    Every read-merge-write runs under one lock with no await in between,
    so interleaved coroutines (or threads) serialise per call.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._activity: dict[tuple[UUID, UUID], ActivityProgress] = {}
        self._module: dict[tuple[UUID, UUID], ModuleProgress] = {}

    async def upsert_activity_progress(
        self,
        learner_id: UUID,
        activity_id: UUID,
        update: ProgressUpdate,
        now: int,
    ) -> ActivityProgress:
        key = (learner_id, activity_id)
        with self._lock:
            merged = merge_activity_progress(
                self._activity.get(key),
                learner_id=learner_id,
                activity_id=activity_id,
                update=update,
                now=now,
            )
            self._activity[key] = merged
        return merged

    async def get_activity_progress(
        self, learner_id: UUID, activity_id: UUID
    ) -> ActivityProgress | None:
        return self._activity.get((learner_id, activity_id))

    async def lock_module_progress(
        self, learner_id: UUID, module_id: UUID
    ) -> ModuleProgress | None:
        return self._module.get((learner_id, module_id))

    async def save_module_progress(self, row: ModuleProgress) -> ModuleProgress:
        with self._lock:
            self._module[(row.learner_id, row.module_id)] = row
        return row

    async def get_module_progress(
        self, learner_id: UUID, module_id: UUID
    ) -> ModuleProgress | None:
        return self._module.get((learner_id, module_id))

    def clear(self) -> None:
        with self._lock:
            self._activity.clear()
            self._module.clear()

    # --- helpers for the in-memory aggregate queries ---

    def activity_rows(self, learner_id: UUID | None = None) -> list[ActivityProgress]:
        with self._lock:
            rows = list(self._activity.values())
        if learner_id is None:
            return rows
        return [r for r in rows if r.learner_id == learner_id]

    def module_rows(self, learner_id: UUID) -> list[ModuleProgress]:
        with self._lock:
            rows = list(self._module.values())
        return [r for r in rows if r.learner_id == learner_id]
