"""Unit of work over the progress data store.

A DataStore hands out transactions; each transaction exposes the
repositories bound to it.  Services open one transaction per step so the
progress write can commit on its own before the cascade runs:

    async with store.transaction() as tx:
        row = await tx.progress.upsert_activity_progress(...)
    # committed here

The in-memory store applies writes immediately, so its transaction is a
plain bundle of the shared repositories.  PgDataStore (pg_store.py) opens a
session per transaction and commits or rolls back on exit.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Protocol

from learnprogress.repos.achievement_repo import AchievementRepo, InMemoryAchievementRepo
from learnprogress.repos.aggregate_queries import (
    AggregateQueries,
    InMemoryAggregateQueries,
)
from learnprogress.repos.content_repo import ContentRepo, InMemoryContentRepo
from learnprogress.repos.progress_repo import InMemoryProgressRepo, ProgressRepo


@dataclass(frozen=True, slots=True)
class Transaction:
    content: ContentRepo
    progress: ProgressRepo
    achievements: AchievementRepo
    queries: AggregateQueries


class DataStore(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[Transaction]: ...


class InMemoryDataStore:
    def __init__(self) -> None:
        self.content = InMemoryContentRepo()
        self.progress = InMemoryProgressRepo()
        self.achievements = InMemoryAchievementRepo()
        self.queries = InMemoryAggregateQueries(
            self.content, self.progress, self.achievements
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        yield Transaction(
            content=self.content,
            progress=self.progress,
            achievements=self.achievements,
            queries=self.queries,
        )

    def clear(self) -> None:
        self.content.clear()
        self.progress.clear()
        self.achievements.clear()
