"""Read-only rollup queries over the content hierarchy and progress rows.

Every rollup LEFT JOINs content against the learner's progress, so content
the learner never touched still shows up, counted as not started.  Counts
are point-in-time snapshots; no locks are taken.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Protocol
from uuid import UUID

from learnprogress.core.clock import day_index, hour_index
from learnprogress.models.progress import ActivityProgress, ModuleProgress
from learnprogress.models.rollups import (
    ActivityCounts,
    ActivityDetail,
    DailyBucket,
    ModuleCounts,
    ModuleRollup,
    PathRollup,
    RecentActivity,
)
from learnprogress.repos.achievement_repo import InMemoryAchievementRepo
from learnprogress.repos.content_repo import InMemoryContentRepo
from learnprogress.repos.progress_repo import InMemoryProgressRepo
from learnprogress.services.rules import completion_rate

RECENT_ACTIVITY_LIMIT = 50


class AggregateQueries(Protocol):
    # --- hierarchy rollups ---
    async def path_rollups(self, learner_id: UUID) -> list[PathRollup]: ...
    async def module_rollups(
        self, learner_id: UUID, path_id: UUID
    ) -> list[ModuleRollup]: ...
    async def activity_details(
        self, learner_id: UUID, module_id: UUID
    ) -> list[ActivityDetail]: ...

    # --- cascade inputs ---
    async def module_activity_counts(
        self, learner_id: UUID, module_id: UUID
    ) -> ActivityCounts: ...
    async def path_module_counts(
        self, learner_id: UUID, path_id: UUID
    ) -> ModuleCounts: ...

    # --- time-windowed inputs for the stats service ---
    async def daily_buckets(self, learner_id: UUID, since: int) -> list[DailyBucket]: ...
    async def category_update_counts(
        self, learner_id: UUID, since: int
    ) -> dict[str, int]: ...
    async def category_time_spent(self, learner_id: UUID) -> dict[str, int]: ...
    async def total_time_spent(self, learner_id: UUID) -> int: ...
    async def session_totals(self, learner_id: UUID) -> list[int]: ...
    async def active_days(self, learner_id: UUID) -> list[int]: ...

    # --- feeds and analytics ---
    async def recent_activities(
        self, learner_id: UUID, limit: int = RECENT_ACTIVITY_LIMIT
    ) -> list[RecentActivity]: ...
    async def count_active_learners(self, since: int) -> int: ...


class InMemoryAggregateQueries:
    """Evaluates the rollups in Python over the in-memory repositories."""

    def __init__(
        self,
        content: InMemoryContentRepo,
        progress: InMemoryProgressRepo,
        achievements: InMemoryAchievementRepo,
    ) -> None:
        self._content = content
        self._progress = progress
        self._achievements = achievements

    def _activity_map(self, learner_id: UUID) -> dict[UUID, ActivityProgress]:
        return {r.activity_id: r for r in self._progress.activity_rows(learner_id)}

    def _module_map(self, learner_id: UUID) -> dict[UUID, ModuleProgress]:
        return {r.module_id: r for r in self._progress.module_rows(learner_id)}

    def _category_of_activity(self, activity_id: UUID) -> str | None:
        activity = self._content.lookup_activity(activity_id)
        if activity is None:
            return None
        module = self._content.lookup_module(activity.module_id)
        if module is None:
            return None
        path = self._content.lookup_path(module.path_id)
        return path.category if path is not None else None

    # --- hierarchy rollups ---

    async def path_rollups(self, learner_id: UUID) -> list[PathRollup]:
        modules_done = self._module_map(learner_id)
        rollups = []
        for path in self._content.paths():
            if not path.is_active:
                continue
            modules = self._content.modules_of(path.id)
            statuses = [
                modules_done[m.id].status if m.id in modules_done else "not_started"
                for m in modules
            ]
            completed = statuses.count("completed")
            rollups.append(
                PathRollup(
                    path_id=path.id,
                    name=path.name,
                    category=path.category,
                    total_modules=len(modules),
                    completed_modules=completed,
                    in_progress_modules=statuses.count("in_progress"),
                    completion_rate=completion_rate(completed, len(modules)),
                )
            )
        rollups.sort(key=lambda r: r.completion_rate, reverse=True)
        return rollups

    async def module_rollups(self, learner_id: UUID, path_id: UUID) -> list[ModuleRollup]:
        module_rows = self._module_map(learner_id)
        activity_rows = self._activity_map(learner_id)
        rollups = []
        for module in self._content.modules_of(path_id):
            activities = self._content.activities_of(module.id)
            completed = sum(
                1
                for a in activities
                if a.id in activity_rows and activity_rows[a.id].status == "completed"
            )
            row = module_rows.get(module.id)
            rollups.append(
                ModuleRollup(
                    module_id=module.id,
                    title=module.title,
                    order_index=module.order_index,
                    status=row.status if row else "not_started",
                    time_spent_seconds=row.time_spent_seconds if row else 0,
                    last_accessed_at=row.last_accessed_at if row else None,
                    completed_at=row.completed_at if row else None,
                    total_activities=len(activities),
                    completed_activities=completed,
                    completion_rate=completion_rate(completed, len(activities)),
                )
            )
        return rollups

    async def activity_details(
        self, learner_id: UUID, module_id: UUID
    ) -> list[ActivityDetail]:
        rows = self._activity_map(learner_id)
        details = []
        for activity in self._content.activities_of(module_id):
            row = rows.get(activity.id)
            details.append(
                ActivityDetail(
                    activity_id=activity.id,
                    title=activity.title,
                    kind=activity.kind,
                    order_index=activity.order_index,
                    status=row.status if row else "not_started",
                    score=row.score if row else None,
                    time_spent_seconds=row.time_spent_seconds if row else 0,
                    attempts=row.attempts if row else 0,
                    last_accessed_at=row.last_accessed_at if row else None,
                    completed_at=row.completed_at if row else None,
                )
            )
        return details

    # --- cascade inputs ---

    async def module_activity_counts(
        self, learner_id: UUID, module_id: UUID
    ) -> ActivityCounts:
        rows = self._activity_map(learner_id)
        activities = self._content.activities_of(module_id)
        touched = [rows[a.id] for a in activities if a.id in rows]
        return ActivityCounts(
            total=len(activities),
            completed=sum(1 for r in touched if r.status == "completed"),
            in_progress=sum(1 for r in touched if r.status == "in_progress"),
            time_spent_seconds=sum(r.time_spent_seconds for r in touched),
        )

    async def path_module_counts(self, learner_id: UUID, path_id: UUID) -> ModuleCounts:
        rows = self._module_map(learner_id)
        modules = self._content.modules_of(path_id)
        touched = [rows[m.id] for m in modules if m.id in rows]
        return ModuleCounts(
            total=len(modules),
            completed=sum(1 for r in touched if r.status == "completed"),
            in_progress=sum(1 for r in touched if r.status == "in_progress"),
        )

    # --- time-windowed inputs ---

    async def daily_buckets(self, learner_id: UUID, since: int) -> list[DailyBucket]:
        updates: dict[int, int] = defaultdict(int)
        seconds: dict[int, int] = defaultdict(int)
        for row in self._progress.activity_rows(learner_id):
            if row.last_accessed_at is None or row.last_accessed_at < since:
                continue
            day = day_index(row.last_accessed_at)
            updates[day] += 1
            seconds[day] += row.time_spent_seconds
        return [
            DailyBucket(day=day, updates=updates[day], seconds=seconds[day])
            for day in sorted(updates)
        ]

    async def category_update_counts(self, learner_id: UUID, since: int) -> dict[str, int]:
        counts: dict[str, int] = defaultdict(int)
        for row in self._progress.activity_rows(learner_id):
            if row.last_accessed_at is None or row.last_accessed_at < since:
                continue
            category = self._category_of_activity(row.activity_id)
            if category is not None:
                counts[category] += 1
        return dict(counts)

    async def category_time_spent(self, learner_id: UUID) -> dict[str, int]:
        totals: dict[str, int] = defaultdict(int)
        for row in self._progress.activity_rows(learner_id):
            category = self._category_of_activity(row.activity_id)
            if category is not None:
                totals[category] += row.time_spent_seconds
        return dict(totals)

    async def total_time_spent(self, learner_id: UUID) -> int:
        return sum(r.time_spent_seconds for r in self._progress.activity_rows(learner_id))

    async def session_totals(self, learner_id: UUID) -> list[int]:
        sessions: dict[int, int] = defaultdict(int)
        for row in self._progress.activity_rows(learner_id):
            if row.last_accessed_at is None:
                continue
            sessions[hour_index(row.last_accessed_at)] += row.time_spent_seconds
        return [sessions[h] for h in sorted(sessions)]

    async def active_days(self, learner_id: UUID) -> list[int]:
        days = {
            day_index(r.last_accessed_at)
            for r in self._progress.activity_rows(learner_id)
            if r.last_accessed_at is not None
        }
        return sorted(days, reverse=True)

    # --- feeds and analytics ---

    async def recent_activities(
        self, learner_id: UUID, limit: int = RECENT_ACTIVITY_LIMIT
    ) -> list[RecentActivity]:
        content = self._content
        feed: list[RecentActivity] = []
        path_starts: dict[UUID, int] = {}

        for row in self._progress.module_rows(learner_id):
            module = content.lookup_module(row.module_id)
            path = content.lookup_path(module.path_id) if module else None
            if module is None or path is None:
                continue
            if row.last_accessed_at is not None:
                current = path_starts.get(path.id)
                if current is None or row.last_accessed_at < current:
                    path_starts[path.id] = row.last_accessed_at
            if row.status == "completed":
                feed.append(
                    RecentActivity.module_completed(
                        module_id=module.id,
                        module_title=module.title,
                        path_id=path.id,
                        path_name=path.name,
                        category=path.category,
                        completed_at=row.completed_at,
                    )
                )

        for row in self._progress.activity_rows(learner_id):
            if row.status != "completed":
                continue
            activity = content.lookup_activity(row.activity_id)
            module = content.lookup_module(activity.module_id) if activity else None
            path = content.lookup_path(module.path_id) if module else None
            if activity is None or module is None or path is None:
                continue
            feed.append(
                RecentActivity.activity_completed(
                    activity_id=activity.id,
                    activity_title=activity.title,
                    kind=activity.kind,
                    score=row.score,
                    module_id=module.id,
                    module_title=module.title,
                    category=path.category,
                    completed_at=row.completed_at,
                )
            )

        for path_id, started_at in path_starts.items():
            path = content.lookup_path(path_id)
            feed.append(
                RecentActivity.path_started(
                    path_id=path.id,
                    path_name=path.name,
                    category=path.category,
                    started_at=started_at,
                )
            )

        for achievement in await self._achievements.list_for_learner(learner_id):
            feed.append(
                RecentActivity.achievement_earned(
                    achievement_id=achievement.id,
                    title=achievement.title,
                    metadata=achievement.metadata,
                    awarded_at=achievement.awarded_at,
                )
            )

        feed.sort(key=lambda e: e.date or 0, reverse=True)
        return feed[:limit]

    async def count_active_learners(self, since: int) -> int:
        return len(
            {
                r.learner_id
                for r in self._progress.activity_rows()
                if r.last_accessed_at is not None and r.last_accessed_at >= since
            }
        )
