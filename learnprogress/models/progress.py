from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

ProgressStatus = Literal["not_started", "in_progress", "completed"]

STATUSES: tuple[str, ...] = ("not_started", "in_progress", "completed")


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    """Inbound payload for one activity-progress event."""

    status: ProgressStatus
    score: int | None = None
    time_spent_delta: int = 0
    attempted: bool = False


@dataclass(frozen=True, slots=True)
class ActivityProgress:
    """Per-learner state of a single activity.

    time_spent_seconds only ever grows; completed_at is written once.
    """

    learner_id: UUID
    activity_id: UUID
    status: ProgressStatus = "not_started"
    score: int | None = None
    time_spent_seconds: int = 0
    attempts: int = 0
    last_accessed_at: int | None = None
    completed_at: int | None = None


@dataclass(frozen=True, slots=True)
class ModuleProgress:
    """Projection derived from the ActivityProgress rows under a module.

    Recomputed by the cascade on every write, never edited directly.
    """

    learner_id: UUID
    module_id: UUID
    status: ProgressStatus = "not_started"
    time_spent_seconds: int = 0
    last_accessed_at: int | None = None
    completed_at: int | None = None
