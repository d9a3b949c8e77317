"""Cascade Updater: propagate an activity write up to module and path.

    activity row written (committed by the recorder)
      -> resolve module, lock its ModuleProgress row
      -> count the module's activities, derive status, save the row
      -> if completed: resolve path, count its modules
      -> if every module completed: award the path achievement

The module row is locked before the activity counts are read, so two
writers cascading into the same module run one after the other and the
later one sees both activity writes.  completed_at is carried over by
rules.merge_module_progress and never cleared.

A broken hierarchy (an activity whose module, or a module whose path, no
longer exists) is logged and counted but never raised: the progress write
has already committed and must not be reported as failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from learnprogress.core.clock import Clock, utc_now
from learnprogress.core.metrics import CASCADE_ANOMALIES
from learnprogress.models.content import Path
from learnprogress.models.progress import ProgressStatus
from learnprogress.repos.store import DataStore
from learnprogress.services.achievements import AchievementAwarder
from learnprogress.services.rules import (
    merge_module_progress,
    module_status,
    path_status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CascadeResult:
    module_id: UUID | None = None
    module_status: ProgressStatus | None = None
    path_id: UUID | None = None
    path_completed: bool = False
    achievement_awarded: bool = False


class CascadeUpdater:
    def __init__(
        self,
        store: DataStore,
        awarder: AchievementAwarder,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._awarder = awarder
        self._clock = clock

    async def cascade_from_activity(
        self, learner_id: UUID, activity_id: UUID
    ) -> CascadeResult:
        completed_path: Path | None = None

        async with self._store.transaction() as tx:
            activity = await tx.content.get_activity(activity_id)
            module = (
                await tx.content.get_module(activity.module_id)
                if activity is not None
                else None
            )
            if module is None:
                _anomaly(
                    "activity_without_module",
                    "Cascade skipped: no module for activity=%s",
                    activity_id,
                )
                return CascadeResult()

            existing = await tx.progress.lock_module_progress(learner_id, module.id)
            counts = await tx.queries.module_activity_counts(learner_id, module.id)
            status = module_status(counts)
            await tx.progress.save_module_progress(
                merge_module_progress(
                    existing,
                    learner_id=learner_id,
                    module_id=module.id,
                    status=status,
                    time_spent_seconds=counts.time_spent_seconds,
                    now=self._clock(),
                )
            )
            logger.debug(
                "Module progress learner=%s module=%s status=%s (%d/%d activities)",
                learner_id,
                module.id,
                status,
                counts.completed,
                counts.total,
            )

            if status != "completed":
                return CascadeResult(module_id=module.id, module_status=status)

            path = await tx.content.get_path(module.path_id)
            if path is None:
                _anomaly(
                    "module_without_path",
                    "Cascade stopped at module: no path for module=%s",
                    module.id,
                )
                return CascadeResult(module_id=module.id, module_status=status)

            path_counts = await tx.queries.path_module_counts(learner_id, path.id)
            if path_status(path_counts) == "completed":
                completed_path = path

        # Awarding runs after the module write has committed
        awarded = False
        if completed_path is not None:
            awarded = await self._awarder.award_path_completion(learner_id, completed_path)

        return CascadeResult(
            module_id=module.id,
            module_status=status,
            path_id=module.path_id,
            path_completed=completed_path is not None,
            achievement_awarded=awarded,
        )


def _anomaly(reason: str, message: str, entity_id: UUID) -> None:
    CASCADE_ANOMALIES.labels(reason=reason).inc()
    logger.warning(message, entity_id)
