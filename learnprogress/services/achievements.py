from __future__ import annotations

import logging
from uuid import UUID

from learnprogress.core.clock import Clock, utc_now
from learnprogress.core.metrics import ACHIEVEMENTS_AWARDED
from learnprogress.models.achievement import PATH_COMPLETION, Achievement
from learnprogress.models.content import Path
from learnprogress.repos.store import DataStore
from learnprogress.services.cache import CacheStore, achievements_key
from learnprogress.services.errors import InvalidInputError

logger = logging.getLogger(__name__)


class AchievementAwarder:
    """Inserts path-completion achievements, at most once per learner and title."""

    def __init__(
        self,
        store: DataStore,
        cache: CacheStore,
        *,
        points: int = 100,
        clock: Clock = utc_now,
    ) -> None:
        if points < 0:
            raise InvalidInputError(f"achievement points must be >= 0 (got {points})")
        self._store = store
        self._cache = cache
        self._points = points
        self._clock = clock

    async def award_path_completion(self, learner_id: UUID, path: Path) -> bool:
        """Award the path-completion badge.  Returns False if already held.

        The learner's achievements cache entry is dropped either way.
        """
        achievement = Achievement.new(
            learner_id=learner_id,
            type=PATH_COMPLETION,
            title=f"Completed {path.name}",
            description=f"Successfully completed the {path.name} learning path",
            points=self._points,
            awarded_at=self._clock(),
            metadata={
                "path_id": str(path.id),
                "path_name": path.name,
                "category": path.category,
            },
        )
        try:
            async with self._store.transaction() as tx:
                inserted = await tx.achievements.add_if_absent(achievement)
        finally:
            await self._cache.delete(achievements_key(learner_id))

        if inserted:
            ACHIEVEMENTS_AWARDED.labels(type=PATH_COMPLETION).inc()
            logger.info(
                "Awarded achievement learner=%s title=%r",
                learner_id,
                achievement.title,
                extra={"learner_id": str(learner_id), "path_id": str(path.id)},
            )
        else:
            logger.debug(
                "Achievement already held learner=%s title=%r",
                learner_id,
                achievement.title,
            )
        return inserted
