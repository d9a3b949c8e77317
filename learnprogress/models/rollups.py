"""Read-side shapes returned by the aggregate queries.

These are plain frozen dataclasses so both query implementations
(in-memory and PostgreSQL) produce identical values and the orchestrator
can turn them into JSON with dataclasses.asdict().
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from learnprogress.models.progress import ProgressStatus


@dataclass(frozen=True, slots=True)
class PathRollup:
    path_id: UUID
    name: str
    category: str
    total_modules: int
    completed_modules: int
    in_progress_modules: int
    completion_rate: float


@dataclass(frozen=True, slots=True)
class ModuleRollup:
    module_id: UUID
    title: str
    order_index: int
    status: ProgressStatus
    time_spent_seconds: int
    last_accessed_at: int | None
    completed_at: int | None
    total_activities: int
    completed_activities: int
    completion_rate: float


@dataclass(frozen=True, slots=True)
class ActivityDetail:
    activity_id: UUID
    title: str
    kind: str
    order_index: int
    status: ProgressStatus
    score: int | None
    time_spent_seconds: int
    attempts: int
    last_accessed_at: int | None
    completed_at: int | None


@dataclass(frozen=True, slots=True)
class ActivityCounts:
    """Cascade input: activity states under one module for one learner."""

    total: int = 0
    completed: int = 0
    in_progress: int = 0
    time_spent_seconds: int = 0


@dataclass(frozen=True, slots=True)
class ModuleCounts:
    """Cascade input: module states under one path for one learner."""

    total: int = 0
    completed: int = 0
    in_progress: int = 0


@dataclass(frozen=True, slots=True)
class DailyBucket:
    day: int  # days since the epoch (UTC)
    updates: int
    seconds: int


@dataclass(frozen=True, slots=True)
class RecentActivity:
    type: str
    title: str
    date: int | None
    category: str
    source_id: UUID
    parent_id: UUID | None = None
    parent_name: str | None = None

    @staticmethod
    def module_completed(
        *,
        module_id: UUID,
        module_title: str,
        path_id: UUID,
        path_name: str,
        category: str,
        completed_at: int | None,
    ) -> RecentActivity:
        return RecentActivity(
            type="module_completion",
            title=f'Completed "{module_title}"',
            date=completed_at,
            category=category,
            source_id=module_id,
            parent_id=path_id,
            parent_name=path_name,
        )

    @staticmethod
    def activity_completed(
        *,
        activity_id: UUID,
        activity_title: str,
        kind: str,
        score: int | None,
        module_id: UUID,
        module_title: str,
        category: str,
        completed_at: int | None,
    ) -> RecentActivity:
        if kind == "quiz":
            title = f'Scored {score if score is not None else 0}% on "{activity_title}"'
        else:
            title = f'Completed "{activity_title}"'
        return RecentActivity(
            type=f"{kind}_completion",
            title=title,
            date=completed_at,
            category=category,
            source_id=activity_id,
            parent_id=module_id,
            parent_name=module_title,
        )

    @staticmethod
    def path_started(
        *, path_id: UUID, path_name: str, category: str, started_at: int | None
    ) -> RecentActivity:
        return RecentActivity(
            type="path_started",
            title=f'Started "{path_name}" path',
            date=started_at,
            category=category,
            source_id=path_id,
        )

    @staticmethod
    def achievement_earned(
        *, achievement_id: UUID, title: str, metadata: dict, awarded_at: int
    ) -> RecentActivity:
        return RecentActivity(
            type="achievement",
            title=f'Earned "{title}" badge',
            date=awarded_at,
            category=metadata.get("category") or "achievement",
            source_id=achievement_id,
        )
