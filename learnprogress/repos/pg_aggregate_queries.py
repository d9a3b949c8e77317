"""PostgreSQL implementation of AggregateQueries.

All rollups are single grouped statements built with SQLAlchemy Core;
learner and entity ids are bound parameters.  Completion rates are derived
in Python through rules.completion_rate so a zero denominator yields 0.0
in both store implementations.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, case, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnprogress.core.clock import SECONDS_PER_DAY, SECONDS_PER_HOUR
from learnprogress.db.tables import (
    AchievementRow,
    ActivityProgressRow,
    ActivityRow,
    ModuleProgressRow,
    ModuleRow,
    PathRow,
)
from learnprogress.models.rollups import (
    ActivityCounts,
    ActivityDetail,
    DailyBucket,
    ModuleCounts,
    ModuleRollup,
    PathRollup,
    RecentActivity,
)
from learnprogress.repos.aggregate_queries import RECENT_ACTIVITY_LIMIT
from learnprogress.services.rules import completion_rate


def _count_status(column, status: str):
    # COUNT ignores NULLs, so only matching rows are counted
    return func.count(case((column == status, 1)))


class PgAggregateQueries:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- hierarchy rollups ---

    async def path_rollups(self, learner_id: UUID) -> list[PathRollup]:
        stmt = (
            select(
                PathRow.id,
                PathRow.name,
                PathRow.category,
                func.count(ModuleRow.id).label("total"),
                _count_status(ModuleProgressRow.status, "completed").label("completed"),
                _count_status(ModuleProgressRow.status, "in_progress").label(
                    "in_progress"
                ),
            )
            .select_from(PathRow)
            .outerjoin(ModuleRow, ModuleRow.path_id == PathRow.id)
            .outerjoin(
                ModuleProgressRow,
                and_(
                    ModuleProgressRow.module_id == ModuleRow.id,
                    ModuleProgressRow.user_id == learner_id,
                ),
            )
            .where(PathRow.is_active.is_(True))
            .group_by(PathRow.id, PathRow.name, PathRow.category)
        )
        rows = (await self._session.execute(stmt)).all()
        rollups = [
            PathRollup(
                path_id=r.id,
                name=r.name,
                category=r.category,
                total_modules=r.total,
                completed_modules=r.completed,
                in_progress_modules=r.in_progress,
                completion_rate=completion_rate(r.completed, r.total),
            )
            for r in rows
        ]
        rollups.sort(key=lambda r: r.completion_rate, reverse=True)
        return rollups

    async def module_rollups(self, learner_id: UUID, path_id: UUID) -> list[ModuleRollup]:
        activity_counts = (
            select(
                ActivityRow.module_id,
                func.count(ActivityRow.id).label("total_activities"),
                _count_status(ActivityProgressRow.status, "completed").label(
                    "completed_activities"
                ),
            )
            .select_from(ActivityRow)
            .outerjoin(
                ActivityProgressRow,
                and_(
                    ActivityProgressRow.activity_id == ActivityRow.id,
                    ActivityProgressRow.user_id == learner_id,
                ),
            )
            .group_by(ActivityRow.module_id)
            .subquery()
        )
        stmt = (
            select(
                ModuleRow.id,
                ModuleRow.title,
                ModuleRow.order_index,
                ModuleProgressRow.status,
                ModuleProgressRow.time_spent_seconds,
                ModuleProgressRow.last_accessed_at,
                ModuleProgressRow.completed_at,
                func.coalesce(activity_counts.c.total_activities, 0).label("total"),
                func.coalesce(activity_counts.c.completed_activities, 0).label(
                    "completed"
                ),
            )
            .select_from(ModuleRow)
            .outerjoin(
                ModuleProgressRow,
                and_(
                    ModuleProgressRow.module_id == ModuleRow.id,
                    ModuleProgressRow.user_id == learner_id,
                ),
            )
            .outerjoin(activity_counts, activity_counts.c.module_id == ModuleRow.id)
            .where(ModuleRow.path_id == path_id)
            .order_by(ModuleRow.order_index)
        )
        rows = (await self._session.execute(stmt)).all()
        return [
            ModuleRollup(
                module_id=r.id,
                title=r.title,
                order_index=r.order_index,
                status=r.status or "not_started",
                time_spent_seconds=r.time_spent_seconds or 0,
                last_accessed_at=r.last_accessed_at,
                completed_at=r.completed_at,
                total_activities=r.total,
                completed_activities=r.completed,
                completion_rate=completion_rate(r.completed, r.total),
            )
            for r in rows
        ]

    async def activity_details(
        self, learner_id: UUID, module_id: UUID
    ) -> list[ActivityDetail]:
        stmt = (
            select(
                ActivityRow.id,
                ActivityRow.title,
                ActivityRow.kind,
                ActivityRow.order_index,
                ActivityProgressRow.status,
                ActivityProgressRow.score,
                ActivityProgressRow.time_spent_seconds,
                ActivityProgressRow.attempts,
                ActivityProgressRow.last_accessed_at,
                ActivityProgressRow.completed_at,
            )
            .select_from(ActivityRow)
            .outerjoin(
                ActivityProgressRow,
                and_(
                    ActivityProgressRow.activity_id == ActivityRow.id,
                    ActivityProgressRow.user_id == learner_id,
                ),
            )
            .where(ActivityRow.module_id == module_id)
            .order_by(ActivityRow.order_index)
        )
        rows = (await self._session.execute(stmt)).all()
        return [
            ActivityDetail(
                activity_id=r.id,
                title=r.title,
                kind=r.kind,
                order_index=r.order_index,
                status=r.status or "not_started",
                score=r.score,
                time_spent_seconds=r.time_spent_seconds or 0,
                attempts=r.attempts or 0,
                last_accessed_at=r.last_accessed_at,
                completed_at=r.completed_at,
            )
            for r in rows
        ]

    # --- cascade inputs ---

    async def module_activity_counts(
        self, learner_id: UUID, module_id: UUID
    ) -> ActivityCounts:
        stmt = (
            select(
                func.count(ActivityRow.id).label("total"),
                _count_status(ActivityProgressRow.status, "completed").label("completed"),
                _count_status(ActivityProgressRow.status, "in_progress").label(
                    "in_progress"
                ),
                func.coalesce(func.sum(ActivityProgressRow.time_spent_seconds), 0).label(
                    "seconds"
                ),
            )
            .select_from(ActivityRow)
            .outerjoin(
                ActivityProgressRow,
                and_(
                    ActivityProgressRow.activity_id == ActivityRow.id,
                    ActivityProgressRow.user_id == learner_id,
                ),
            )
            .where(ActivityRow.module_id == module_id)
        )
        row = (await self._session.execute(stmt)).one()
        return ActivityCounts(
            total=row.total,
            completed=row.completed,
            in_progress=row.in_progress,
            time_spent_seconds=int(row.seconds),
        )

    async def path_module_counts(self, learner_id: UUID, path_id: UUID) -> ModuleCounts:
        stmt = (
            select(
                func.count(ModuleRow.id).label("total"),
                _count_status(ModuleProgressRow.status, "completed").label("completed"),
                _count_status(ModuleProgressRow.status, "in_progress").label(
                    "in_progress"
                ),
            )
            .select_from(ModuleRow)
            .outerjoin(
                ModuleProgressRow,
                and_(
                    ModuleProgressRow.module_id == ModuleRow.id,
                    ModuleProgressRow.user_id == learner_id,
                ),
            )
            .where(ModuleRow.path_id == path_id)
        )
        row = (await self._session.execute(stmt)).one()
        return ModuleCounts(
            total=row.total, completed=row.completed, in_progress=row.in_progress
        )

    # --- time-windowed inputs ---

    async def daily_buckets(self, learner_id: UUID, since: int) -> list[DailyBucket]:
        day = (ActivityProgressRow.last_accessed_at // SECONDS_PER_DAY).label("day")
        stmt = (
            select(
                day,
                func.count().label("updates"),
                func.coalesce(func.sum(ActivityProgressRow.time_spent_seconds), 0).label(
                    "seconds"
                ),
            )
            .where(
                ActivityProgressRow.user_id == learner_id,
                ActivityProgressRow.last_accessed_at >= since,
            )
            .group_by(day)
            .order_by(day)
        )
        rows = (await self._session.execute(stmt)).all()
        return [
            DailyBucket(day=int(r.day), updates=r.updates, seconds=int(r.seconds))
            for r in rows
        ]

    def _by_category(self, *columns):
        return (
            select(PathRow.category, *columns)
            .select_from(ActivityProgressRow)
            .join(ActivityRow, ActivityRow.id == ActivityProgressRow.activity_id)
            .join(ModuleRow, ModuleRow.id == ActivityRow.module_id)
            .join(PathRow, PathRow.id == ModuleRow.path_id)
            .group_by(PathRow.category)
        )

    async def category_update_counts(self, learner_id: UUID, since: int) -> dict[str, int]:
        stmt = self._by_category(func.count().label("n")).where(
            ActivityProgressRow.user_id == learner_id,
            ActivityProgressRow.last_accessed_at >= since,
        )
        rows = (await self._session.execute(stmt)).all()
        return {r.category: r.n for r in rows}

    async def category_time_spent(self, learner_id: UUID) -> dict[str, int]:
        stmt = self._by_category(
            func.sum(ActivityProgressRow.time_spent_seconds).label("seconds")
        ).where(ActivityProgressRow.user_id == learner_id)
        rows = (await self._session.execute(stmt)).all()
        return {r.category: int(r.seconds or 0) for r in rows}

    async def total_time_spent(self, learner_id: UUID) -> int:
        stmt = select(
            func.coalesce(func.sum(ActivityProgressRow.time_spent_seconds), 0)
        ).where(ActivityProgressRow.user_id == learner_id)
        return int((await self._session.execute(stmt)).scalar_one())

    async def session_totals(self, learner_id: UUID) -> list[int]:
        hour = (ActivityProgressRow.last_accessed_at // SECONDS_PER_HOUR).label("hour")
        stmt = (
            select(hour, func.sum(ActivityProgressRow.time_spent_seconds).label("seconds"))
            .where(
                ActivityProgressRow.user_id == learner_id,
                ActivityProgressRow.last_accessed_at.is_not(None),
            )
            .group_by(hour)
            .order_by(hour)
        )
        rows = (await self._session.execute(stmt)).all()
        return [int(r.seconds or 0) for r in rows]

    async def active_days(self, learner_id: UUID) -> list[int]:
        day = ActivityProgressRow.last_accessed_at // SECONDS_PER_DAY
        stmt = (
            select(distinct(day).label("day"))
            .where(
                ActivityProgressRow.user_id == learner_id,
                ActivityProgressRow.last_accessed_at.is_not(None),
            )
            .order_by(day.desc())
        )
        return [int(d) for d in (await self._session.execute(stmt)).scalars().all()]

    # --- feeds and analytics ---

    async def recent_activities(
        self, learner_id: UUID, limit: int = RECENT_ACTIVITY_LIMIT
    ) -> list[RecentActivity]:
        feed: list[RecentActivity] = []

        module_done = (
            select(
                ModuleRow.id,
                ModuleRow.title,
                PathRow.id.label("path_id"),
                PathRow.name,
                PathRow.category,
                ModuleProgressRow.completed_at,
            )
            .select_from(ModuleProgressRow)
            .join(ModuleRow, ModuleRow.id == ModuleProgressRow.module_id)
            .join(PathRow, PathRow.id == ModuleRow.path_id)
            .where(
                ModuleProgressRow.user_id == learner_id,
                ModuleProgressRow.status == "completed",
            )
            .order_by(ModuleProgressRow.completed_at.desc().nulls_last())
            .limit(limit)
        )
        for r in (await self._session.execute(module_done)).all():
            feed.append(
                RecentActivity.module_completed(
                    module_id=r.id,
                    module_title=r.title,
                    path_id=r.path_id,
                    path_name=r.name,
                    category=r.category,
                    completed_at=r.completed_at,
                )
            )

        activity_done = (
            select(
                ActivityRow.id,
                ActivityRow.title,
                ActivityRow.kind,
                ActivityProgressRow.score,
                ModuleRow.id.label("module_id"),
                ModuleRow.title.label("module_title"),
                PathRow.category,
                ActivityProgressRow.completed_at,
            )
            .select_from(ActivityProgressRow)
            .join(ActivityRow, ActivityRow.id == ActivityProgressRow.activity_id)
            .join(ModuleRow, ModuleRow.id == ActivityRow.module_id)
            .join(PathRow, PathRow.id == ModuleRow.path_id)
            .where(
                ActivityProgressRow.user_id == learner_id,
                ActivityProgressRow.status == "completed",
            )
            .order_by(ActivityProgressRow.completed_at.desc().nulls_last())
            .limit(limit)
        )
        for r in (await self._session.execute(activity_done)).all():
            feed.append(
                RecentActivity.activity_completed(
                    activity_id=r.id,
                    activity_title=r.title,
                    kind=r.kind,
                    score=r.score,
                    module_id=r.module_id,
                    module_title=r.module_title,
                    category=r.category,
                    completed_at=r.completed_at,
                )
            )

        started_at = func.min(ModuleProgressRow.last_accessed_at)
        path_started = (
            select(
                PathRow.id,
                PathRow.name,
                PathRow.category,
                started_at.label("started_at"),
            )
            .select_from(ModuleProgressRow)
            .join(ModuleRow, ModuleRow.id == ModuleProgressRow.module_id)
            .join(PathRow, PathRow.id == ModuleRow.path_id)
            .where(
                ModuleProgressRow.user_id == learner_id,
                ModuleProgressRow.last_accessed_at.is_not(None),
            )
            .group_by(PathRow.id, PathRow.name, PathRow.category)
            .order_by(started_at.desc())
            .limit(limit)
        )
        for r in (await self._session.execute(path_started)).all():
            feed.append(
                RecentActivity.path_started(
                    path_id=r.id,
                    path_name=r.name,
                    category=r.category,
                    started_at=r.started_at,
                )
            )

        earned = (
            select(AchievementRow)
            .where(AchievementRow.user_id == learner_id)
            .order_by(AchievementRow.awarded_at.desc())
            .limit(limit)
        )
        for a in (await self._session.execute(earned)).scalars().all():
            feed.append(
                RecentActivity.achievement_earned(
                    achievement_id=a.id,
                    title=a.title,
                    metadata=dict(a.metadata_json or {}),
                    awarded_at=a.awarded_at,
                )
            )

        feed.sort(key=lambda e: e.date or 0, reverse=True)
        return feed[:limit]

    async def count_active_learners(self, since: int) -> int:
        stmt = select(func.count(distinct(ActivityProgressRow.user_id))).where(
            ActivityProgressRow.last_accessed_at >= since
        )
        return int((await self._session.execute(stmt)).scalar_one())
