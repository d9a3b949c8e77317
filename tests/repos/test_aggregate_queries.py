"""In-memory aggregate queries: left-join semantics and ordering."""

from __future__ import annotations

import asyncio
from uuid import uuid4

from learnprogress.models.content import Path
from learnprogress.models.progress import ModuleProgress, ProgressUpdate
from learnprogress.repos.store import InMemoryDataStore
from tests.conftest import NOW, seed_path


def _write(store: InMemoryDataStore, learner, activity_id, status: str, seconds: int = 0):
    return asyncio.run(
        store.progress.upsert_activity_progress(
            learner,
            activity_id,
            ProgressUpdate(status, time_spent_delta=seconds),  # type: ignore[arg-type]
            NOW,
        )
    )


def test_path_rollups_include_untouched_content(store: InMemoryDataStore) -> None:
    seed_path(store.content, modules=3)
    [rollup] = asyncio.run(store.queries.path_rollups(uuid4()))
    assert rollup.total_modules == 3
    assert rollup.completed_modules == 0
    assert rollup.completion_rate == 0.0


def test_path_rollups_skip_inactive_paths(store: InMemoryDataStore) -> None:
    store.content.add_path(Path.new(name="Retired", category="misc", is_active=False))
    seed_path(store.content)
    rollups = asyncio.run(store.queries.path_rollups(uuid4()))
    assert [r.name for r in rollups] == ["Budgeting Basics"]


def test_path_rollups_ordered_by_completion_rate(store: InMemoryDataStore) -> None:
    learner = uuid4()
    untouched = seed_path(store.content, name="Untouched")
    done = seed_path(store.content, name="Done", activities_per_module=1)

    asyncio.run(
        store.progress.save_module_progress(
            ModuleProgress(
                learner_id=learner,
                module_id=done.modules[0].id,
                status="completed",
                completed_at=NOW,
            )
        )
    )

    rollups = asyncio.run(store.queries.path_rollups(learner))
    assert [r.path_id for r in rollups] == [done.path.id, untouched.path.id]


def test_module_activity_counts(store: InMemoryDataStore) -> None:
    seeded = seed_path(store.content, activities_per_module=3)
    learner = uuid4()
    a1, a2, _ = seeded.activities_of(0)
    _write(store, learner, a1.id, "completed", 100)
    _write(store, learner, a2.id, "in_progress", 50)
    # another learner's rows never leak in
    _write(store, uuid4(), a2.id, "completed", 999)

    counts = asyncio.run(store.queries.module_activity_counts(learner, seeded.modules[0].id))
    assert (counts.total, counts.completed, counts.in_progress) == (3, 1, 1)
    assert counts.time_spent_seconds == 150


def test_module_rollups_in_order_with_rates(store: InMemoryDataStore) -> None:
    seeded = seed_path(store.content, modules=2, activities_per_module=2)
    learner = uuid4()
    _write(store, learner, seeded.activities_of(1)[0].id, "completed")

    rollups = asyncio.run(store.queries.module_rollups(learner, seeded.path.id))
    assert [r.order_index for r in rollups] == [0, 1]
    assert [r.completion_rate for r in rollups] == [0.0, 0.5]
    assert rollups[0].status == "not_started"


def test_activity_details_default_to_not_started(store: InMemoryDataStore) -> None:
    seeded = seed_path(store.content, activities_per_module=2)
    details = asyncio.run(store.queries.activity_details(uuid4(), seeded.modules[0].id))
    assert [d.status for d in details] == ["not_started", "not_started"]
    assert all(d.attempts == 0 and d.score is None for d in details)
