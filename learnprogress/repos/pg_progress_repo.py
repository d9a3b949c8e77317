"""PostgreSQL implementation of ProgressRepo.

The activity upsert runs in two branches inside the caller's transaction:

  1. INSERT ... ON CONFLICT DO NOTHING with the values a first event
     produces.  If the insert lands, that row is the result.
  2. Otherwise SELECT ... FOR UPDATE the existing row, merge the update
     with rules.merge_activity_progress, and write it back.

A concurrent writer for the same (user_id, activity_id) blocks on the row
lock in step 2 (or on the pending insert in step 1) until the first
transaction commits, so time-spent deltas are never lost.
"""

from __future__ import annotations

from dataclasses import asdict
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy import update as sql_update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from learnprogress.db.tables import ActivityProgressRow, ModuleProgressRow
from learnprogress.models.progress import ActivityProgress, ModuleProgress, ProgressUpdate
from learnprogress.services.rules import merge_activity_progress


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert_activity_progress(
        self,
        learner_id: UUID,
        activity_id: UUID,
        update: ProgressUpdate,
        now: int,
    ) -> ActivityProgress:
        fresh = merge_activity_progress(
            None,
            learner_id=learner_id,
            activity_id=activity_id,
            update=update,
            now=now,
        )
        insert_stmt = (
            pg_insert(ActivityProgressRow)
            .values(**_activity_values(fresh))
            .on_conflict_do_nothing(index_elements=["user_id", "activity_id"])
        )
        result = await self._session.execute(insert_stmt)
        if result.rowcount == 1:
            return fresh

        key = and_(
            ActivityProgressRow.user_id == learner_id,
            ActivityProgressRow.activity_id == activity_id,
        )
        locked = (
            select(ActivityProgressRow)
            .where(key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(locked)).scalar_one()
        merged = merge_activity_progress(
            _row_to_activity(row),
            learner_id=learner_id,
            activity_id=activity_id,
            update=update,
            now=now,
        )
        values = _activity_values(merged)
        del values["user_id"], values["activity_id"]
        await self._session.execute(
            sql_update(ActivityProgressRow).where(key).values(**values)
        )
        return merged

    async def get_activity_progress(
        self, learner_id: UUID, activity_id: UUID
    ) -> ActivityProgress | None:
        stmt = select(ActivityProgressRow).where(
            ActivityProgressRow.user_id == learner_id,
            ActivityProgressRow.activity_id == activity_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_activity(row) if row is not None else None

    async def lock_module_progress(
        self, learner_id: UUID, module_id: UUID
    ) -> ModuleProgress | None:
        # Make sure there is a row to lock, then hold it for the cascade
        await self._session.execute(
            pg_insert(ModuleProgressRow)
            .values(user_id=learner_id, module_id=module_id, status="not_started")
            .on_conflict_do_nothing(index_elements=["user_id", "module_id"])
        )
        stmt = (
            select(ModuleProgressRow)
            .where(
                ModuleProgressRow.user_id == learner_id,
                ModuleProgressRow.module_id == module_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one()
        return _row_to_module(row)

    async def save_module_progress(self, row: ModuleProgress) -> ModuleProgress:
        stmt = (
            pg_insert(ModuleProgressRow)
            .values(
                user_id=row.learner_id,
                module_id=row.module_id,
                status=row.status,
                time_spent_seconds=row.time_spent_seconds,
                last_accessed_at=row.last_accessed_at,
                completed_at=row.completed_at,
            )
            .on_conflict_do_update(
                index_elements=["user_id", "module_id"],
                set_={
                    "status": row.status,
                    "time_spent_seconds": row.time_spent_seconds,
                    "last_accessed_at": row.last_accessed_at,
                    "completed_at": row.completed_at,
                },
            )
        )
        await self._session.execute(stmt)
        return row

    async def get_module_progress(
        self, learner_id: UUID, module_id: UUID
    ) -> ModuleProgress | None:
        stmt = select(ModuleProgressRow).where(
            ModuleProgressRow.user_id == learner_id,
            ModuleProgressRow.module_id == module_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_module(row) if row is not None else None


def _activity_values(progress: ActivityProgress) -> dict:
    values = asdict(progress)
    values["user_id"] = values.pop("learner_id")
    return values


def _row_to_activity(row: ActivityProgressRow) -> ActivityProgress:
    return ActivityProgress(
        learner_id=row.user_id,
        activity_id=row.activity_id,
        status=row.status,  # type: ignore[arg-type]
        score=row.score,
        time_spent_seconds=row.time_spent_seconds,
        attempts=row.attempts,
        last_accessed_at=row.last_accessed_at,
        completed_at=row.completed_at,
    )


def _row_to_module(row: ModuleProgressRow) -> ModuleProgress:
    return ModuleProgress(
        learner_id=row.user_id,
        module_id=row.module_id,
        status=row.status,  # type: ignore[arg-type]
        time_spent_seconds=row.time_spent_seconds,
        last_accessed_at=row.last_accessed_at,
        completed_at=row.completed_at,
    )
