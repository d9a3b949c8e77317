"""Cross-learner analytics and cache administration."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from learnprogress.api.dependencies import get_progress_service
from learnprogress.services.progress_service import ProgressService

router = APIRouter(prefix="/v1", tags=["analytics"])

Service = Annotated[ProgressService, Depends(get_progress_service)]


@router.get("/analytics/active-learners")
async def get_active_learners(service: Service) -> dict:
    return await service.get_active_learner_count()


@router.get("/cache/stats")
async def get_cache_stats(service: Service) -> dict:
    return await service.cache_stats()


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache(service: Service) -> Response:
    await service.clear_all_caches()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
