from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from learnprogress.api.dependencies import cache_store, data_store
from learnprogress.core.config import Settings
from learnprogress.main import app
from learnprogress.models.content import Activity, Module, Path
from learnprogress.repos.content_repo import InMemoryContentRepo
from learnprogress.repos.store import InMemoryDataStore
from learnprogress.services.cache import InMemoryCacheStore
from learnprogress.services.progress_service import ProgressService

# Wednesday 2024-06-12 12:00:00 UTC
NOW = 1_718_193_600

TEST_SETTINGS = Settings(  # type: ignore[arg-type]
    app_env="test",
    log_level="info",
    log_json=False,
    port=8000,
    database_url=None,
    redis_url=None,
)


@pytest.fixture(autouse=True)
def reset_data_store() -> None:
    """Clear the shared in-memory store between tests."""
    if isinstance(data_store, InMemoryDataStore):
        data_store.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear the shared cache between tests."""
    asyncio.run(cache_store.clear())


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Service-level fixtures (isolated store, cache and clock per test)
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryDataStore:
    return InMemoryDataStore()


@pytest.fixture
def cache(clock: FakeClock) -> InMemoryCacheStore:
    return InMemoryCacheStore(300, clock=clock)


@pytest.fixture
def service(
    store: InMemoryDataStore, cache: InMemoryCacheStore, clock: FakeClock
) -> ProgressService:
    return ProgressService(store, cache, settings=TEST_SETTINGS, clock=clock)


# ---------------------------------------------------------------------------
# Content helpers
# ---------------------------------------------------------------------------


@dataclass
class SeededPath:
    path: Path
    modules: list[Module] = field(default_factory=list)
    activities: dict[UUID, list[Activity]] = field(default_factory=dict)

    def activities_of(self, index: int) -> list[Activity]:
        return self.activities[self.modules[index].id]


def seed_path(
    content: InMemoryContentRepo,
    *,
    name: str = "Budgeting Basics",
    category: str = "finance",
    modules: int = 1,
    activities_per_module: int = 2,
    kind: str = "exercise",
) -> SeededPath:
    """Create a path with ``modules`` modules of ``activities_per_module`` each."""
    seeded = SeededPath(path=content.add_path(Path.new(name=name, category=category)))
    for m in range(modules):
        module = content.add_module(
            Module.new(path_id=seeded.path.id, order_index=m, title=f"{name} {m + 1}")
        )
        seeded.modules.append(module)
        seeded.activities[module.id] = [
            content.add_activity(
                Activity.new(
                    module_id=module.id,
                    order_index=a,
                    kind=kind,
                    title=f"{module.title}.{a + 1}",
                )
            )
            for a in range(activities_per_module)
        ]
    return seeded
