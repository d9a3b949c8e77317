"""Cascade from activity to module to path.

Driven directly against the in-memory store: the recorder writes the
activity row, then cascade_from_activity recomputes the module.
"""

from __future__ import annotations

import asyncio
from uuid import UUID, uuid4

import pytest
from prometheus_client import REGISTRY

from learnprogress.models.progress import ProgressUpdate
from learnprogress.repos.store import InMemoryDataStore
from learnprogress.services.cascade import CascadeResult
from learnprogress.services.progress_service import ProgressService
from tests.conftest import FakeClock, seed_path


def _complete(service: ProgressService, learner: UUID, activity_id: UUID) -> CascadeResult:
    asyncio.run(service.recorder.record(learner, activity_id, ProgressUpdate("completed")))
    return asyncio.run(service.cascade.cascade_from_activity(learner, activity_id))


def _anomalies(reason: str) -> float:
    value = REGISTRY.get_sample_value("cascade_anomalies_total", {"reason": reason})
    return value if value is not None else 0.0


def test_all_activities_completed_marks_module_completed(
    store: InMemoryDataStore, service: ProgressService
) -> None:
    seeded = seed_path(store.content, modules=2, activities_per_module=3)
    learner = uuid4()

    results = [_complete(service, learner, a.id) for a in seeded.activities_of(0)]

    assert [r.module_status for r in results] == ["in_progress", "in_progress", "completed"]
    row = asyncio.run(store.progress.get_module_progress(learner, seeded.modules[0].id))
    assert row is not None
    assert row.status == "completed"
    assert row.completed_at is not None
    # the path still has an untouched module
    assert results[-1].path_completed is False
    assert results[-1].achievement_awarded is False


def test_n_minus_one_completed_is_in_progress(
    store: InMemoryDataStore, service: ProgressService
) -> None:
    seeded = seed_path(store.content, activities_per_module=3)
    learner = uuid4()
    for activity in seeded.activities_of(0)[:-1]:
        result = _complete(service, learner, activity.id)
    assert result.module_status == "in_progress"


def test_no_completed_activities_is_not_started(
    store: InMemoryDataStore, service: ProgressService
) -> None:
    seeded = seed_path(store.content, activities_per_module=2)
    learner = uuid4()
    activity = seeded.activities_of(0)[0]

    asyncio.run(service.recorder.record(learner, activity.id, ProgressUpdate("not_started")))
    result = asyncio.run(service.cascade.cascade_from_activity(learner, activity.id))

    assert result.module_status == "not_started"


def test_module_time_is_sum_of_activity_time(
    store: InMemoryDataStore, service: ProgressService
) -> None:
    seeded = seed_path(store.content, activities_per_module=2)
    learner = uuid4()
    a1, a2 = seeded.activities_of(0)
    for activity, seconds in ((a1, 90), (a2, 30)):
        asyncio.run(
            service.recorder.record(
                learner, activity.id, ProgressUpdate("in_progress", time_spent_delta=seconds)
            )
        )
    asyncio.run(service.cascade.cascade_from_activity(learner, a2.id))

    row = asyncio.run(store.progress.get_module_progress(learner, seeded.modules[0].id))
    assert row is not None
    assert row.time_spent_seconds == 120


def test_completing_last_module_awards_path_achievement(
    store: InMemoryDataStore, service: ProgressService
) -> None:
    seeded = seed_path(store.content, modules=2, activities_per_module=1)
    learner = uuid4()

    _complete(service, learner, seeded.activities_of(0)[0].id)
    result = _complete(service, learner, seeded.activities_of(1)[0].id)

    assert result.path_id == seeded.path.id
    assert result.path_completed is True
    assert result.achievement_awarded is True


def test_module_completed_at_not_regressed_by_reopen(
    store: InMemoryDataStore, service: ProgressService, clock: FakeClock
) -> None:
    seeded = seed_path(store.content, activities_per_module=1)
    learner = uuid4()
    activity = seeded.activities_of(0)[0]

    _complete(service, learner, activity.id)
    first = asyncio.run(store.progress.get_module_progress(learner, seeded.modules[0].id))
    clock.advance(600)
    asyncio.run(service.recorder.record(learner, activity.id, ProgressUpdate("in_progress")))
    asyncio.run(service.cascade.cascade_from_activity(learner, activity.id))
    after = asyncio.run(store.progress.get_module_progress(learner, seeded.modules[0].id))

    assert first is not None and after is not None
    assert after.status == "in_progress"
    assert after.completed_at == first.completed_at


def test_concurrent_completions_converge(
    store: InMemoryDataStore, service: ProgressService
) -> None:
    seeded = seed_path(store.content, activities_per_module=4)
    learner = uuid4()

    async def complete(activity_id: UUID) -> None:
        await service.recorder.record(learner, activity_id, ProgressUpdate("completed"))
        await service.cascade.cascade_from_activity(learner, activity_id)

    async def burst() -> None:
        await asyncio.gather(*(complete(a.id) for a in seeded.activities_of(0)))

    asyncio.run(burst())

    row = asyncio.run(store.progress.get_module_progress(learner, seeded.modules[0].id))
    assert row is not None
    assert row.status == "completed"
    achievements = asyncio.run(store.achievements.list_for_learner(learner))
    assert len(achievements) == 1


# ---- broken hierarchy ----


def test_activity_without_module_is_a_logged_no_op(
    store: InMemoryDataStore, service: ProgressService, caplog: pytest.LogCaptureFixture
) -> None:
    seeded = seed_path(store.content)
    learner = uuid4()
    activity = seeded.activities_of(0)[0]
    asyncio.run(service.recorder.record(learner, activity.id, ProgressUpdate("completed")))
    store.content.remove_module(seeded.modules[0].id)
    before = _anomalies("activity_without_module")

    with caplog.at_level("WARNING"):
        result = asyncio.run(service.cascade.cascade_from_activity(learner, activity.id))

    assert result == CascadeResult()
    assert store.progress.module_rows(learner) == []
    assert _anomalies("activity_without_module") - before == 1
    assert "no module for activity" in caplog.text


def test_module_without_path_stops_at_module(
    store: InMemoryDataStore, service: ProgressService, caplog: pytest.LogCaptureFixture
) -> None:
    seeded = seed_path(store.content, activities_per_module=2)
    learner = uuid4()
    first, last = seeded.activities_of(0)
    _complete(service, learner, first.id)
    asyncio.run(service.recorder.record(learner, last.id, ProgressUpdate("completed")))
    store.content.remove_path(seeded.path.id)
    before = _anomalies("module_without_path")

    with caplog.at_level("WARNING", logger="learnprogress.services.cascade"):
        result = asyncio.run(service.cascade.cascade_from_activity(learner, last.id))

    assert result == CascadeResult(module_id=seeded.modules[0].id, module_status="completed")
    assert asyncio.run(store.achievements.list_for_learner(learner)) == []
    assert _anomalies("module_without_path") - before == 1
    warnings = [r for r in caplog.records if r.levelname == "WARNING"]
    assert [r.getMessage() for r in warnings] == [
        f"Cascade stopped at module: no path for module={seeded.modules[0].id}"
    ]
