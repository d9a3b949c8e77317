"""Async SQLAlchemy engine and session factory.

When DATABASE_URL is configured:
- `engine` and `async_session_factory` back PgDataStore transactions
- in dev, lifespan_db() creates any missing tables on startup

When DATABASE_URL is None both exports are None and the service runs on
the in-memory data store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from learnprogress.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the tables in db/tables.py."""


if SETTINGS.database_url:
    engine: AsyncEngine | None = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    async_session_factory: async_sessionmaker[AsyncSession] | None = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


async def create_schema(bind: AsyncEngine, *, drop_first: bool = False) -> None:
    """Create every table declared in db/tables.py that does not exist yet."""
    from learnprogress.db import tables  # noqa: F401  (registers the tables on Base)

    async with bind.begin() as conn:
        if drop_first:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def database_status() -> str:
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("No DATABASE_URL configured, using the in-memory data store")
        yield
        return

    logger.info("Database engine created: %s", engine.url)
    if SETTINGS.is_dev:
        await create_schema(engine)
        logger.info("Schema ensured (dev)")
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
