"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a connection pool is
created at import time; when it is not, redis_pool is None and the cache
store falls back to the in-process implementation.

With several API replicas the in-process cache is per replica, so an
invalidation issued by one replica does not reach the others until the
TTL expires.  Pointing every replica at the same Redis makes
invalidation global.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from learnprogress.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,  # cached views are JSON text
        max_connections=20,
    )
else:
    redis_pool = None


async def redis_status() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("No REDIS_URL configured, caching in process memory")
        yield
        return

    if await redis_status() == "ok":
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    else:
        # Keep serving; cache calls surface errors per request
        logger.error("Redis unreachable on startup: %s", SETTINGS.redis_url)

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
