"""Progress Recorder: validates and persists one activity-progress event.

The merge itself lives in rules.merge_activity_progress; the repository
runs it inside its own atomic section (a lock in memory, an
INSERT ... ON CONFLICT / SELECT ... FOR UPDATE pair in PostgreSQL), so two
events for the same (learner, activity) never lose a time-spent delta.
"""

from __future__ import annotations

import logging
from uuid import UUID

from learnprogress.core.clock import Clock, utc_now
from learnprogress.core.metrics import PROGRESS_WRITES
from learnprogress.models.progress import STATUSES, ActivityProgress, ProgressUpdate
from learnprogress.repos.store import DataStore
from learnprogress.services.errors import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)


def require_id(name: str, value: UUID | str | None) -> UUID:
    """Coerce an identifier to a UUID, rejecting missing or malformed ones."""
    if isinstance(value, UUID):
        return value
    if value is None or not str(value).strip():
        raise InvalidInputError(f"{name} is required")
    try:
        return UUID(str(value).strip())
    except ValueError:
        raise InvalidInputError(f"{name} must be a UUID (got {value!r})") from None


def validate_update(update: ProgressUpdate) -> None:
    if update.status not in STATUSES:
        raise InvalidInputError(
            f"status must be one of {'|'.join(STATUSES)} (got {update.status!r})"
        )
    delta = update.time_spent_delta
    if isinstance(delta, bool) or not isinstance(delta, int) or delta < 0:
        raise InvalidInputError(
            f"time_spent_delta must be a non-negative integer (got {delta!r})"
        )
    score = update.score
    if score is not None and (
        isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100
    ):
        raise InvalidInputError(f"score must be between 0 and 100 (got {score!r})")


class ProgressRecorder:
    def __init__(self, store: DataStore, *, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def record(
        self,
        learner_id: UUID | str,
        activity_id: UUID | str,
        update: ProgressUpdate,
    ) -> ActivityProgress:
        """Merge ``update`` into the learner's row for the activity.

        Raises InvalidInputError before touching the store, and
        NotFoundError when the activity does not exist.  The write is
        committed when this returns.
        """
        learner = require_id("learner_id", learner_id)
        activity_key = require_id("activity_id", activity_id)
        validate_update(update)

        async with self._store.transaction() as tx:
            activity = await tx.content.get_activity(activity_key)
            if activity is None:
                raise NotFoundError("activity", activity_key)
            row = await tx.progress.upsert_activity_progress(
                learner, activity_key, update, self._clock()
            )

        PROGRESS_WRITES.labels(status=row.status).inc()
        logger.info(
            "Recorded progress learner=%s activity=%s status=%s time_spent=%d",
            learner,
            activity_key,
            row.status,
            row.time_spent_seconds,
            extra={"learner_id": str(learner), "activity_id": str(activity_key)},
        )
        return row
