"""PostgreSQL implementation of ContentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnprogress.db.tables import ActivityRow, ModuleRow, PathRow
from learnprogress.models.content import Activity, Module, Path


class PgContentRepo:
    """Satisfies the ContentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_path(self, path_id: UUID) -> Path | None:
        stmt = select(PathRow).where(PathRow.id == path_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Path(
            id=row.id,
            name=row.name,
            category=row.category,
            is_active=row.is_active,
            description=row.description or "",
        )

    async def get_module(self, module_id: UUID) -> Module | None:
        stmt = select(ModuleRow).where(ModuleRow.id == module_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Module(
            id=row.id, path_id=row.path_id, order_index=row.order_index, title=row.title
        )

    async def get_activity(self, activity_id: UUID) -> Activity | None:
        stmt = select(ActivityRow).where(ActivityRow.id == activity_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Activity(
            id=row.id,
            module_id=row.module_id,
            order_index=row.order_index,
            kind=row.kind,
            title=row.title,
        )
