"""Cache store for derived progress views.

Every derived view (user progress, path/module progress, the recent
activity feed, weekly stats, achievements, streaks) is cached as a JSON
string under a learner-scoped key:

  progress:{learner}                  overall progress
  progress:{learner}:path:{path}      one path
  progress:{learner}:module:{module}  one module
  activities:{learner}:recent         recent-activity feed
  stats:{learner}:weekly              weekly stats
  stats:{learner}:streak              learning streak
  achievements:{learner}              achievements

Staleness is bounded two ways:

  1. TTL: every entry expires after ``ttl_seconds`` (default 300).  Even
     if an invalidation is missed, the entry disappears on its own.
  2. Explicit invalidation: a progress write deletes every key carrying
     the learner's id, so the next read recomputes from the data store.

Values are replaced wholesale and never mutated in place, which is what
lets a single lock (in process) or plain GET/SETEX (Redis) stay correct
under concurrent readers and writers.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from learnprogress.core.clock import Clock, utc_now
from learnprogress.core.metrics import CACHE_ENTRIES, CACHE_OPERATIONS

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300

ACTIVE_LEARNERS_KEY = "analytics:active-learners"


def user_progress_key(learner_id: object) -> str:
    return f"progress:{learner_id}"


def path_progress_key(learner_id: object, path_id: object) -> str:
    return f"progress:{learner_id}:path:{path_id}"


def module_progress_key(learner_id: object, module_id: object) -> str:
    return f"progress:{learner_id}:module:{module_id}"


def recent_activities_key(learner_id: object) -> str:
    return f"activities:{learner_id}:recent"


def weekly_stats_key(learner_id: object) -> str:
    return f"stats:{learner_id}:weekly"


def streak_key(learner_id: object) -> str:
    return f"stats:{learner_id}:streak"


def achievements_key(learner_id: object) -> str:
    return f"achievements:{learner_id}"


@runtime_checkable
class CacheStore(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on miss or expiry."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value; ``ttl_seconds`` defaults to the store's TTL."""
        ...

    async def delete(self, key: str) -> bool:
        """Explicitly invalidate one entry.  Returns whether it existed."""
        ...

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``.  Returns the count."""
        ...

    async def clear(self) -> None: ...

    async def purge_expired(self) -> int: ...

    async def stats(self) -> dict: ...


@dataclass
class _Counters:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0

    def as_dict(self, keys: int) -> dict:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "keys": keys,
            "hit_rate": (self.hits / lookups) if lookups else 0.0,
        }


class InMemoryCacheStore:
    """Process-local cache with per-entry expiry.

    Entries are ``key -> (value, expires_at)``.  Expiry is checked on
    ``get``; ``purge_expired`` reclaims entries nobody reads again and is
    driven by ``run_cache_sweeper``.  The lock is a threading lock because
    the TestClient and the sweeper may touch the store from different
    threads; no critical section awaits.
    """

    def __init__(
        self, ttl_seconds: int = DEFAULT_TTL_SECONDS, *, clock: Clock = utc_now
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive (got {ttl_seconds})")
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._store: dict[str, tuple[str, int]] = {}
        self._counters = _Counters()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    async def get(self, key: str) -> str | None:
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is not None and entry[1] <= now:
                del self._store[key]
                entry = None
            if entry is None:
                self._counters.misses += 1
            else:
                self._counters.hits += 1
            size = len(self._store)
        CACHE_ENTRIES.set(size)
        CACHE_OPERATIONS.labels(operation="miss" if entry is None else "hit").inc()
        return entry[0] if entry is not None else None

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + (ttl_seconds or self._ttl)
        with self._lock:
            self._store[key] = (value, expires_at)
            self._counters.sets += 1
            size = len(self._store)
        CACHE_ENTRIES.set(size)

    async def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._store.pop(key, None) is not None
            if existed:
                self._counters.deletes += 1
            size = len(self._store)
        CACHE_ENTRIES.set(size)
        return existed

    async def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._store if k.startswith(prefix)]
            for k in doomed:
                del self._store[k]
            self._counters.deletes += len(doomed)
            size = len(self._store)
        CACHE_ENTRIES.set(size)
        return len(doomed)

    async def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._counters = _Counters()
        CACHE_ENTRIES.set(0)

    async def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, exp) in self._store.items() if exp <= now]
            for k in expired:
                del self._store[k]
            size = len(self._store)
        CACHE_ENTRIES.set(size)
        return len(expired)

    async def stats(self) -> dict:
        with self._lock:
            return self._counters.as_dict(len(self._store))


class RedisCacheStore:
    """Redis-backed cache, shared by every API replica.

    Redis expires keys itself, so ``purge_expired`` has nothing to do.
    Hit/miss counters are per process.
    """

    # Keeps cache keys apart from anything else living in the same Redis
    _PREFIX = "cache:"

    def __init__(self, redis_client, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds
        self._counters = _Counters()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(f"{self._PREFIX}{key}")
        if value is None:
            self._counters.misses += 1
            CACHE_OPERATIONS.labels(operation="miss").inc()
        else:
            self._counters.hits += 1
            CACHE_OPERATIONS.labels(operation="hit").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds or self._ttl, value)
        self._counters.sets += 1

    async def delete(self, key: str) -> bool:
        removed = await self._redis.delete(f"{self._PREFIX}{key}")
        self._counters.deletes += removed
        return removed > 0

    async def _scan(self, match: str) -> list[str]:
        # SCAN is cursor-based, so Redis keeps serving other clients
        # between batches; KEYS would block it for the whole keyspace.
        found: list[str] = []
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(cursor, match=match, count=100)
            found.extend(keys)
            if cursor == 0:
                break
        return found

    async def delete_prefix(self, prefix: str) -> int:
        keys = await self._scan(f"{self._PREFIX}{prefix}*")
        if not keys:
            return 0
        removed = await self._redis.delete(*keys)
        self._counters.deletes += removed
        return removed

    async def clear(self) -> None:
        await self.delete_prefix("")
        self._counters = _Counters()

    async def purge_expired(self) -> int:
        return 0

    async def stats(self) -> dict:
        keys = await self._scan(f"{self._PREFIX}*")
        return self._counters.as_dict(len(keys))


async def run_cache_sweeper(cache: CacheStore, interval_seconds: int) -> None:
    """Purge expired entries every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        purged = await cache.purge_expired()
        if purged:
            logger.debug("Cache sweep purged %d expired entries", purged)
