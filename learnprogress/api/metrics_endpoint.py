"""Prometheus scrape endpoint.

Returns every metric declared in core/metrics.py in the text exposition
format.  The cache counters are the interesting ones for this service:

  cache_operations_total{operation="hit"} 1432.0
  cache_operations_total{operation="miss"} 211.0
  cache_invalidations_total 198.0
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
