"""Cache orchestrator: the public face of the progress subsystem.

Reads are read-through:

    cache.get(key) -> hit  -> return
                   -> miss -> compute from the store -> cache.set -> return

Values are cached as JSON strings, and a miss returns the decoded copy
of what was stored, so a hit and a miss hand back identical shapes.

The write path is:

    ProgressRecorder.record      (own transaction, committed)
    CascadeUpdater.cascade_...   (own transaction; may award)
    invalidate_learner           (always, once the record committed)

Invalidation is unconditional because time spent changes on every write
even when no status does.

A read that misses the cache can overlap a write.  Each invalidation
bumps a per-learner generation, and a read whose generation moved while
it was computing returns its result without caching it, so a snapshot
taken before the write never outlives the invalidation.  Generations
live in process memory; they guard the writes this process serves.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import Any
from uuid import UUID

from learnprogress.core.clock import Clock, day_index, day_start, utc_now
from learnprogress.core.config import SETTINGS, Settings
from learnprogress.core.metrics import CACHE_INVALIDATIONS
from learnprogress.models.progress import ProgressUpdate
from learnprogress.repos.aggregate_queries import RECENT_ACTIVITY_LIMIT
from learnprogress.repos.store import DataStore
from learnprogress.services.achievements import AchievementAwarder
from learnprogress.services.cache import (
    ACTIVE_LEARNERS_KEY,
    CacheStore,
    achievements_key,
    module_progress_key,
    path_progress_key,
    recent_activities_key,
    streak_key,
    user_progress_key,
    weekly_stats_key,
)
from learnprogress.services.cascade import CascadeUpdater
from learnprogress.services.errors import InvalidInputError, NotFoundError
from learnprogress.services.progress_recorder import ProgressRecorder, require_id
from learnprogress.services.rules import completion_rate
from learnprogress.services.stats import StatsService

logger = logging.getLogger(__name__)


def _encode(value: Any) -> str:
    # UUIDs are the only non-JSON values the rollups carry
    return json.dumps(value, default=str)


class ProgressService:
    def __init__(
        self,
        store: DataStore,
        cache: CacheStore,
        *,
        settings: Settings = SETTINGS,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._cache = cache
        self._clock = clock
        self._ttl = settings.cache_ttl_seconds
        self._active_learner_days = settings.active_learner_days
        # Bumped on every invalidation; a read computed under an older
        # generation is returned but never cached
        self._generations: dict[UUID | None, int] = {}

        self.recorder = ProgressRecorder(store, clock=clock)
        self.awarder = AchievementAwarder(
            store, cache, points=settings.achievement_points, clock=clock
        )
        self.cascade = CascadeUpdater(store, self.awarder, clock=clock)
        self.stats = StatsService(
            store, clock=clock, window_days=settings.weekly_stats_days
        )

    async def _cached(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        learner_id: UUID | None = None,
    ) -> Any:
        cached = await self._cache.get(key)
        if cached is not None:
            return json.loads(cached)

        generation = self._generations.get(learner_id, 0)
        encoded = _encode(await compute())
        if self._generations.get(learner_id, 0) != generation:
            # A write invalidated the learner while compute() ran
            logger.debug("Not caching %s: computed before an invalidation", key)
            return json.loads(encoded)

        await self._cache.set(key, encoded, self._ttl)
        if self._generations.get(learner_id, 0) != generation:
            await self._cache.delete(key)
        return json.loads(encoded)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_user_progress(self, learner_id: UUID | str) -> dict:
        learner = require_id("learner_id", learner_id)

        async def compute() -> dict:
            async with self._store.transaction() as tx:
                paths = await tx.queries.path_rollups(learner)
            total = sum(p.total_modules for p in paths)
            completed = sum(p.completed_modules for p in paths)
            in_progress = sum(p.in_progress_modules for p in paths)
            return {
                "paths": [asdict(p) for p in paths],
                "stats": {
                    "total_paths": len(paths),
                    "completed_paths": sum(
                        1
                        for p in paths
                        if p.total_modules > 0 and p.completed_modules == p.total_modules
                    ),
                    "total_modules": total,
                    "completed_modules": completed,
                    "in_progress_modules": in_progress,
                    "not_started_modules": total - completed - in_progress,
                    "completion_rate": completion_rate(completed, total),
                },
            }

        return await self._cached(user_progress_key(learner), compute, learner)

    async def get_path_progress(self, learner_id: UUID | str, path_id: UUID | str) -> dict:
        learner = require_id("learner_id", learner_id)
        path_key = require_id("path_id", path_id)

        async def compute() -> dict:
            async with self._store.transaction() as tx:
                path = await tx.content.get_path(path_key)
                if path is None:
                    raise NotFoundError("path", path_key)
                modules = await tx.queries.module_rollups(learner, path_key)

            completed = sum(1 for m in modules if m.status == "completed")
            in_progress = sum(1 for m in modules if m.status == "in_progress")
            total_activities = sum(m.total_activities for m in modules)
            completed_activities = sum(m.completed_activities for m in modules)
            seconds = sum(m.time_spent_seconds for m in modules)
            accessed = [m.last_accessed_at for m in modules if m.last_accessed_at]
            return {
                "path": asdict(path),
                "modules": [asdict(m) for m in modules],
                "stats": {
                    "total_modules": len(modules),
                    "completed_modules": completed,
                    "in_progress_modules": in_progress,
                    "not_started_modules": len(modules) - completed - in_progress,
                    "completion_rate": completion_rate(completed, len(modules)),
                    "total_activities": total_activities,
                    "completed_activities": completed_activities,
                    "activity_completion_rate": completion_rate(
                        completed_activities, total_activities
                    ),
                    "total_time_spent_seconds": seconds,
                    "total_time_spent_minutes": round(seconds / 60),
                    "last_accessed_at": max(accessed) if accessed else None,
                },
            }

        return await self._cached(path_progress_key(learner, path_key), compute, learner)

    async def get_module_progress(
        self, learner_id: UUID | str, module_id: UUID | str
    ) -> dict:
        learner = require_id("learner_id", learner_id)
        module_key = require_id("module_id", module_id)

        async def compute() -> dict:
            async with self._store.transaction() as tx:
                module = await tx.content.get_module(module_key)
                if module is None:
                    raise NotFoundError("module", module_key)
                path = await tx.content.get_path(module.path_id)
                row = await tx.progress.get_module_progress(learner, module_key)
                activities = await tx.queries.activity_details(learner, module_key)

            completed = sum(1 for a in activities if a.status == "completed")
            in_progress = sum(1 for a in activities if a.status == "in_progress")
            scores = [a.score for a in activities if a.score is not None]
            seconds = sum(a.time_spent_seconds for a in activities)
            return {
                "module": {
                    **asdict(module),
                    "path_name": path.name if path else None,
                    "status": row.status if row else "not_started",
                },
                "activities": [asdict(a) for a in activities],
                "stats": {
                    "total_activities": len(activities),
                    "completed_activities": completed,
                    "in_progress_activities": in_progress,
                    "not_started_activities": len(activities) - completed - in_progress,
                    "completion_rate": completion_rate(completed, len(activities)),
                    "average_score": sum(scores) / len(scores) if scores else None,
                    "total_time_spent_seconds": seconds,
                    "total_time_spent_minutes": round(seconds / 60),
                    "last_accessed_at": row.last_accessed_at if row else None,
                    "completed_at": row.completed_at if row else None,
                },
            }

        return await self._cached(
            module_progress_key(learner, module_key), compute, learner
        )

    async def get_recent_activities(
        self, learner_id: UUID | str, limit: int = 10
    ) -> list[dict]:
        """Newest-first feed; the cached copy holds the newest 50 entries."""
        learner = require_id("learner_id", learner_id)
        if not 1 <= limit <= RECENT_ACTIVITY_LIMIT:
            raise InvalidInputError(
                f"limit must be between 1 and {RECENT_ACTIVITY_LIMIT} (got {limit})"
            )

        async def compute() -> list[dict]:
            async with self._store.transaction() as tx:
                feed = await tx.queries.recent_activities(learner, RECENT_ACTIVITY_LIMIT)
            return [asdict(e) for e in feed]

        feed = await self._cached(recent_activities_key(learner), compute, learner)
        return feed[:limit]

    async def get_weekly_stats(self, learner_id: UUID | str) -> dict:
        learner = require_id("learner_id", learner_id)
        return await self._cached(
            weekly_stats_key(learner), lambda: self.stats.weekly_stats(learner), learner
        )

    async def get_learning_streak(self, learner_id: UUID | str) -> dict:
        learner = require_id("learner_id", learner_id)

        async def compute() -> dict:
            return {"streak_days": await self.stats.learning_streak(learner)}

        return await self._cached(streak_key(learner), compute, learner)

    async def get_achievements(self, learner_id: UUID | str) -> list[dict]:
        learner = require_id("learner_id", learner_id)

        async def compute() -> list[dict]:
            async with self._store.transaction() as tx:
                achievements = await tx.achievements.list_for_learner(learner)
            return [asdict(a) for a in achievements]

        return await self._cached(achievements_key(learner), compute, learner)

    async def get_active_learner_count(self) -> dict:
        days = self._active_learner_days

        async def compute() -> dict:
            since = day_start(day_index(self._clock()) - days + 1)
            async with self._store.transaction() as tx:
                count = await tx.queries.count_active_learners(since)
            return {"active_learners": count, "window_days": days}

        return await self._cached(ACTIVE_LEARNERS_KEY, compute)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def record_activity_progress(
        self,
        learner_id: UUID | str,
        activity_id: UUID | str,
        update: ProgressUpdate,
    ) -> dict:
        row = await self.recorder.record(learner_id, activity_id, update)
        try:
            result = await self.cascade.cascade_from_activity(
                row.learner_id, row.activity_id
            )
        finally:
            await self.invalidate_learner(row.learner_id)
        return json.loads(_encode({"progress": asdict(row), "cascade": asdict(result)}))

    # ------------------------------------------------------------------
    # Cache administration
    # ------------------------------------------------------------------

    async def invalidate_learner(self, learner_id: UUID) -> int:
        # Bump before deleting so a read already past its cache miss sees it
        self._generations[learner_id] = self._generations.get(learner_id, 0) + 1
        removed =await self._cache.delete_prefix(user_progress_key(learner_id))
        removed += await self._cache.delete_prefix(f"stats:{learner_id}:")
        removed += int(await self._cache.delete(recent_activities_key(learner_id)))
        removed += int(await self._cache.delete(achievements_key(learner_id)))
        CACHE_INVALIDATIONS.inc()
        logger.debug(
            "Invalidated %d cache entries for learner=%s",
            removed,
            learner_id,
            extra={"learner_id": str(learner_id)},
        )
        return removed

    async def cache_stats(self) -> dict:
        return await self._cache.stats()

    async def clear_all_caches(self) -> None:
        await self._cache.clear()
        logger.info("All progress caches cleared")
