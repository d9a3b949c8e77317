"""Liveness and readiness endpoints.

  /health  "is the process alive?"  Always 200; the body reports each
           backing service as ok, degraded or not_configured.
  /ready   "can this instance serve traffic?"  503 when the database is
           configured but unreachable.  A Redis outage only costs cache
           hits, so it does not fail readiness.
"""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from learnprogress.db.engine import database_status
from learnprogress.db.redis import redis_status

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    checks = {"database": await database_status(), "redis": await redis_status()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await database_status() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
