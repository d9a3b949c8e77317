"""PostgreSQL implementation of AchievementRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from learnprogress.db.tables import AchievementRow
from learnprogress.models.achievement import Achievement


class PgAchievementRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_if_absent(self, achievement: Achievement) -> bool:
        stmt = (
            pg_insert(AchievementRow)
            .values(
                id=achievement.id,
                user_id=achievement.learner_id,
                type=achievement.type,
                title=achievement.title,
                description=achievement.description,
                points=achievement.points,
                metadata_json=achievement.metadata,
                awarded_at=achievement.awarded_at,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "type", "title"])
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def list_for_learner(self, learner_id: UUID) -> list[Achievement]:
        stmt = (
            select(AchievementRow)
            .where(AchievementRow.user_id == learner_id)
            .order_by(AchievementRow.awarded_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_achievement(r) for r in rows]


def _row_to_achievement(row: AchievementRow) -> Achievement:
    return Achievement(
        id=row.id,
        learner_id=row.user_id,
        type=row.type,
        title=row.title,
        points=row.points,
        awarded_at=row.awarded_at,
        description=row.description or "",
        metadata=dict(row.metadata_json or {}),
    )
