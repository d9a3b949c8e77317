"""PostgreSQL-backed DataStore: one AsyncSession per transaction."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnprogress.repos.pg_achievement_repo import PgAchievementRepo
from learnprogress.repos.pg_aggregate_queries import PgAggregateQueries
from learnprogress.repos.pg_content_repo import PgContentRepo
from learnprogress.repos.pg_progress_repo import PgProgressRepo
from learnprogress.repos.store import Transaction


class PgDataStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Commits on success, rolls back on exception."""
        async with self._session_factory() as session:
            try:
                yield Transaction(
                    content=PgContentRepo(session),
                    progress=PgProgressRepo(session),
                    achievements=PgAchievementRepo(session),
                    queries=PgAggregateQueries(session),
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise
