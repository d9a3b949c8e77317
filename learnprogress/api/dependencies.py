"""Service wiring and FastAPI dependencies.

The data store and cache are chosen once at import time, the same way
db/engine.py and db/redis.py pick their backends:

  DATABASE_URL set  -> PgDataStore over the async session factory
  otherwise         -> InMemoryDataStore

  REDIS_URL set     -> RedisCacheStore (shared by every replica)
  otherwise         -> InMemoryCacheStore (swept by the lifespan task)
"""

from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from learnprogress.core.config import SETTINGS
from learnprogress.db.engine import async_session_factory
from learnprogress.db.redis import redis_pool
from learnprogress.repos.pg_store import PgDataStore
from learnprogress.repos.store import DataStore, InMemoryDataStore
from learnprogress.services.cache import CacheStore, InMemoryCacheStore, RedisCacheStore
from learnprogress.services.errors import InvalidInputError, NotFoundError
from learnprogress.services.progress_service import ProgressService

logger = logging.getLogger(__name__)

if async_session_factory is not None:
    data_store: DataStore = PgDataStore(async_session_factory)
else:
    data_store = InMemoryDataStore()

if redis_pool is not None:
    cache_store: CacheStore = RedisCacheStore(redis_pool, SETTINGS.cache_ttl_seconds)
else:
    cache_store = InMemoryCacheStore(SETTINGS.cache_ttl_seconds)

progress_service = ProgressService(data_store, cache_store, settings=SETTINGS)


def get_progress_service() -> ProgressService:
    return progress_service


async def not_found_handler(_request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


async def invalid_input_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Rejected invalid input: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)}
    )


EXCEPTION_HANDLERS = {
    NotFoundError: not_found_handler,
    InvalidInputError: invalid_input_handler,
}
