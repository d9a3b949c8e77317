"""Learner progress endpoints.

Thin layer over ProgressService: every GET is a read-through cached view,
and the single POST records an activity event, cascades it upward and
invalidates the learner's cached views before returning.

  GET  /v1/learners/{learner_id}/progress
  GET  /v1/learners/{learner_id}/paths/{path_id}/progress
  GET  /v1/learners/{learner_id}/modules/{module_id}/progress
  GET  /v1/learners/{learner_id}/activities/recent?limit=10
  GET  /v1/learners/{learner_id}/stats/weekly
  GET  /v1/learners/{learner_id}/stats/streak
  GET  /v1/learners/{learner_id}/achievements
  POST /v1/learners/{learner_id}/activities/{activity_id}/progress
"""

from __future__ import annotations

from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from learnprogress.api.dependencies import get_progress_service
from learnprogress.models.progress import ProgressUpdate
from learnprogress.repos.aggregate_queries import RECENT_ACTIVITY_LIMIT
from learnprogress.services.progress_service import ProgressService

router = APIRouter(prefix="/v1/learners", tags=["progress"])

Service = Annotated[ProgressService, Depends(get_progress_service)]


class ActivityProgressIn(BaseModel):
    status: Literal["not_started", "in_progress", "completed"]
    score: int | None = Field(default=None, ge=0, le=100)
    time_spent_delta: int = Field(default=0, ge=0)  # seconds
    attempted: bool = False


@router.get("/{learner_id}/progress")
async def get_user_progress(learner_id: UUID, service: Service) -> dict:
    return await service.get_user_progress(learner_id)


@router.get("/{learner_id}/paths/{path_id}/progress")
async def get_path_progress(learner_id: UUID, path_id: UUID, service: Service) -> dict:
    return await service.get_path_progress(learner_id, path_id)


@router.get("/{learner_id}/modules/{module_id}/progress")
async def get_module_progress(
    learner_id: UUID, module_id: UUID, service: Service
) -> dict:
    return await service.get_module_progress(learner_id, module_id)


@router.get("/{learner_id}/activities/recent")
async def get_recent_activities(
    learner_id: UUID,
    service: Service,
    limit: Annotated[int, Query(ge=1, le=RECENT_ACTIVITY_LIMIT)] = 10,
) -> list[dict]:
    return await service.get_recent_activities(learner_id, limit)


@router.get("/{learner_id}/stats/weekly")
async def get_weekly_stats(learner_id: UUID, service: Service) -> dict:
    return await service.get_weekly_stats(learner_id)


@router.get("/{learner_id}/stats/streak")
async def get_learning_streak(learner_id: UUID, service: Service) -> dict:
    return await service.get_learning_streak(learner_id)


@router.get("/{learner_id}/achievements")
async def get_achievements(learner_id: UUID, service: Service) -> list[dict]:
    return await service.get_achievements(learner_id)


@router.post("/{learner_id}/activities/{activity_id}/progress")
async def record_activity_progress(
    learner_id: UUID,
    activity_id: UUID,
    body: ActivityProgressIn,
    service: Service,
) -> dict:
    update = ProgressUpdate(
        status=body.status,
        score=body.score,
        time_spent_delta=body.time_spent_delta,
        attempted=body.attempted,
    )
    return await service.record_activity_progress(learner_id, activity_id, update)
