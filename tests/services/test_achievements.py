from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from learnprogress.models.achievement import PATH_COMPLETION
from learnprogress.repos.store import InMemoryDataStore
from learnprogress.services.achievements import AchievementAwarder
from learnprogress.services.cache import InMemoryCacheStore, achievements_key
from learnprogress.services.errors import InvalidInputError
from tests.conftest import FakeClock, seed_path


@pytest.fixture
def awarder(
    store: InMemoryDataStore, cache: InMemoryCacheStore, clock: FakeClock
) -> AchievementAwarder:
    return AchievementAwarder(store, cache, points=100, clock=clock)


def test_award_inserts_path_completion(
    store: InMemoryDataStore, awarder: AchievementAwarder, clock: FakeClock
) -> None:
    path = seed_path(store.content, name="P1", category="career").path
    learner = uuid4()

    assert asyncio.run(awarder.award_path_completion(learner, path)) is True

    [achievement] = asyncio.run(store.achievements.list_for_learner(learner))
    assert achievement.type == PATH_COMPLETION
    assert achievement.title == "Completed P1"
    assert achievement.description == "Successfully completed the P1 learning path"
    assert achievement.points == 100
    assert achievement.awarded_at == clock.now
    assert achievement.metadata == {
        "path_id": str(path.id),
        "path_name": "P1",
        "category": "career",
    }


def test_award_is_idempotent(store: InMemoryDataStore, awarder: AchievementAwarder) -> None:
    path = seed_path(store.content).path
    learner = uuid4()

    first = asyncio.run(awarder.award_path_completion(learner, path))
    second = asyncio.run(awarder.award_path_completion(learner, path))

    assert (first, second) == (True, False)
    assert len(asyncio.run(store.achievements.list_for_learner(learner))) == 1


def test_same_path_awarded_to_each_learner(
    store: InMemoryDataStore, awarder: AchievementAwarder
) -> None:
    path = seed_path(store.content).path
    assert asyncio.run(awarder.award_path_completion(uuid4(), path)) is True
    assert asyncio.run(awarder.award_path_completion(uuid4(), path)) is True


def test_award_invalidates_achievements_cache_even_when_duplicate(
    store: InMemoryDataStore, cache: InMemoryCacheStore, awarder: AchievementAwarder
) -> None:
    path = seed_path(store.content).path
    learner = uuid4()
    asyncio.run(awarder.award_path_completion(learner, path))
    asyncio.run(cache.set(achievements_key(learner), "[]"))

    asyncio.run(awarder.award_path_completion(learner, path))

    assert asyncio.run(cache.get(achievements_key(learner))) is None


def test_negative_points_rejected(
    store: InMemoryDataStore, cache: InMemoryCacheStore
) -> None:
    with pytest.raises(InvalidInputError, match="points"):
        AchievementAwarder(store, cache, points=-1)
