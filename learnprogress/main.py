from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from learnprogress.api.analytics import router as analytics_router
from learnprogress.api.dependencies import EXCEPTION_HANDLERS, cache_store
from learnprogress.api.health import router as health_router
from learnprogress.api.metrics_endpoint import router as metrics_router
from learnprogress.api.progress import router as progress_router
from learnprogress.core.config import SETTINGS
from learnprogress.core.logging import setup_logging
from learnprogress.db.engine import lifespan_db
from learnprogress.db.redis import lifespan_redis
from learnprogress.middleware.metrics import MetricsMiddleware
from learnprogress.middleware.request_context import RequestContextMiddleware
from learnprogress.services.cache import InMemoryCacheStore, run_cache_sweeper

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan_cache_sweeper() -> AsyncGenerator[None, None]:
    """Run the expiry sweeper for the in-process cache; Redis expires keys itself."""
    if not isinstance(cache_store, InMemoryCacheStore):
        yield
        return

    task = asyncio.create_task(
        run_cache_sweeper(cache_store, SETTINGS.cache_sweep_interval_seconds)
    )
    logger.info(
        "Cache sweeper started interval=%ds ttl=%ds",
        SETTINGS.cache_sweep_interval_seconds,
        SETTINGS.cache_ttl_seconds,
    )
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Cache sweeper stopped")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order of startup
    async with lifespan_db():
        async with lifespan_redis():
            async with lifespan_cache_sweeper():
                yield


app = FastAPI(
    title="learning-progress-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
    exception_handlers=EXCEPTION_HANDLERS,
)

# Last-added runs first: RequestContext (outermost) -> Metrics -> route
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(progress_router)
app.include_router(analytics_router)

logger.info(
    "learning-progress-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
