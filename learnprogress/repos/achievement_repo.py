from __future__ import annotations

import threading
from typing import Protocol
from uuid import UUID

from learnprogress.models.achievement import Achievement


class AchievementRepo(Protocol):
    async def add_if_absent(self, achievement: Achievement) -> bool:
        """Insert unless (learner_id, type, title) exists. True when inserted."""
        ...

    async def list_for_learner(self, learner_id: UUID) -> list[Achievement]: ...


class InMemoryAchievementRepo:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_key: dict[tuple[UUID, str, str], Achievement] = {}

    async def add_if_absent(self, achievement: Achievement) -> bool:
        with self._lock:
            if achievement.key in self._by_key:
                return False
            self._by_key[achievement.key] = achievement
            return True

    async def list_for_learner(self, learner_id: UUID) -> list[Achievement]:
        with self._lock:
            rows = [a for a in self._by_key.values() if a.learner_id == learner_id]
        return sorted(rows, key=lambda a: a.awarded_at, reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._by_key.clear()
