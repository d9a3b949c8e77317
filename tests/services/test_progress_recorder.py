from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from learnprogress.models.progress import ProgressUpdate
from learnprogress.repos.store import InMemoryDataStore
from learnprogress.services.errors import InvalidInputError, NotFoundError
from learnprogress.services.progress_recorder import ProgressRecorder, require_id
from tests.conftest import FakeClock, seed_path


@pytest.fixture
def recorder(store: InMemoryDataStore, clock: FakeClock) -> ProgressRecorder:
    return ProgressRecorder(store, clock=clock)


def test_time_spent_accumulates_across_calls(
    store: InMemoryDataStore, recorder: ProgressRecorder
) -> None:
    """120s then 180s on the same activity stores 300s."""
    activity = seed_path(store.content).activities_of(0)[0]
    learner = uuid4()

    asyncio.run(
        recorder.record(learner, activity.id, ProgressUpdate("in_progress", time_spent_delta=120))
    )
    row = asyncio.run(
        recorder.record(learner, activity.id, ProgressUpdate("in_progress", time_spent_delta=180))
    )

    assert row.time_spent_seconds == 300
    stored = asyncio.run(store.progress.get_activity_progress(learner, activity.id))
    assert stored is not None
    assert stored.time_spent_seconds == 300


def test_concurrent_writes_lose_no_time(
    store: InMemoryDataStore, recorder: ProgressRecorder
) -> None:
    activity = seed_path(store.content).activities_of(0)[0]
    learner = uuid4()

    async def burst() -> None:
        await asyncio.gather(
            *(
                recorder.record(
                    learner,
                    activity.id,
                    ProgressUpdate("in_progress", time_spent_delta=10, attempted=True),
                )
                for _ in range(50)
            )
        )

    asyncio.run(burst())

    stored = asyncio.run(store.progress.get_activity_progress(learner, activity.id))
    assert stored is not None
    assert stored.time_spent_seconds == 500
    assert stored.attempts == 50


def test_completed_at_survives_later_updates(
    store: InMemoryDataStore, recorder: ProgressRecorder, clock: FakeClock
) -> None:
    activity = seed_path(store.content).activities_of(0)[0]
    learner = uuid4()

    first = asyncio.run(recorder.record(learner, activity.id, ProgressUpdate("completed")))
    clock.advance(3600)
    later = asyncio.run(recorder.record(learner, activity.id, ProgressUpdate("in_progress")))

    assert first.completed_at is not None
    assert later.completed_at == first.completed_at
    assert later.last_accessed_at == clock.now


def test_accepts_string_identifiers(
    store: InMemoryDataStore, recorder: ProgressRecorder
) -> None:
    activity = seed_path(store.content).activities_of(0)[0]
    learner = uuid4()
    row = asyncio.run(recorder.record(str(learner), str(activity.id), ProgressUpdate("completed")))
    assert row.learner_id == learner


def test_unknown_activity_raises_not_found(recorder: ProgressRecorder) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(recorder.record(uuid4(), uuid4(), ProgressUpdate("completed")))
    assert exc_info.value.entity == "activity"


# ---- validation (rejected before the store is touched) ----


@pytest.mark.parametrize(
    "update",
    [
        ProgressUpdate("finished"),  # type: ignore[arg-type]
        ProgressUpdate("in_progress", time_spent_delta=-1),
        ProgressUpdate("completed", score=101),
        ProgressUpdate("completed", score=-5),
    ],
)
def test_invalid_updates_rejected(recorder: ProgressRecorder, update: ProgressUpdate) -> None:
    with pytest.raises(InvalidInputError):
        asyncio.run(recorder.record(uuid4(), uuid4(), update))


@pytest.mark.parametrize("value", [None, "", "   ", "not-a-uuid"])
def test_require_id_rejects_missing_or_malformed(value: str | None) -> None:
    with pytest.raises(InvalidInputError):
        require_id("learner_id", value)


def test_validation_happens_before_lookup(
    store: InMemoryDataStore, recorder: ProgressRecorder
) -> None:
    """A bad payload for an unknown activity is invalid input, not not-found."""
    with pytest.raises(InvalidInputError):
        asyncio.run(
            recorder.record(uuid4(), uuid4(), ProgressUpdate("in_progress", time_spent_delta=-1))
        )
    assert store.progress.activity_rows() == []
