"""Pure progress rules.

Everything here is side-effect free: status derivation, the additive and
sticky merge of progress rows, and rate arithmetic.  Repositories call the
merge functions inside whatever atomic section their store provides, and
the cascade calls the derivation functions between its reads and writes,
so the rules can be tested without a database.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from learnprogress.models.progress import (
    ActivityProgress,
    ModuleProgress,
    ProgressStatus,
    ProgressUpdate,
)
from learnprogress.models.rollups import ActivityCounts, ModuleCounts


def derive_status(total: int, completed: int, in_progress: int) -> ProgressStatus:
    """Status of a container from the states of its children.

    An empty container stays not_started: there is nothing to complete.
    """
    if total > 0 and completed >= total:
        return "completed"
    if completed > 0 or in_progress > 0:
        return "in_progress"
    return "not_started"


def module_status(counts: ActivityCounts) -> ProgressStatus:
    return derive_status(counts.total, counts.completed, counts.in_progress)


def path_status(counts: ModuleCounts) -> ProgressStatus:
    return derive_status(counts.total, counts.completed, counts.in_progress)


def completion_rate(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return completed / total


def merge_activity_progress(
    existing: ActivityProgress | None,
    *,
    learner_id: UUID,
    activity_id: UUID,
    update: ProgressUpdate,
    now: int,
) -> ActivityProgress:
    if existing is None:
        return ActivityProgress(
            learner_id=learner_id,
            activity_id=activity_id,
            status=update.status,
            score=update.score,
            time_spent_seconds=update.time_spent_delta,
            attempts=1 if update.attempted else 0,
            last_accessed_at=now,
            completed_at=now if update.status == "completed" else None,
        )

    completed_at = existing.completed_at
    if completed_at is None and update.status == "completed":
        completed_at = now

    return replace(
        existing,
        status=update.status,
        score=update.score if update.score is not None else existing.score,
        time_spent_seconds=existing.time_spent_seconds + update.time_spent_delta,
        attempts=existing.attempts + (1 if update.attempted else 0),
        last_accessed_at=now,
        completed_at=completed_at,
    )


def merge_module_progress(
    existing: ModuleProgress | None,
    *,
    learner_id: UUID,
    module_id: UUID,
    status: ProgressStatus,
    time_spent_seconds: int,
    now: int,
) -> ModuleProgress:
    completed_at = existing.completed_at if existing is not None else None
    if completed_at is None and status == "completed":
        completed_at = now

    return ModuleProgress(
        learner_id=learner_id,
        module_id=module_id,
        status=status,
        time_spent_seconds=time_spent_seconds,
        last_accessed_at=now,
        completed_at=completed_at,
    )
