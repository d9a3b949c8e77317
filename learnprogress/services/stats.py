"""Stats Service: time-windowed rollups for one learner.

Day buckets are UTC calendar days ending today.  A "session" is every
progress row sharing the same truncated-to-hour last_accessed_at, so
back-to-back sessions straddling an hour boundary count as two.
"""

from __future__ import annotations

from uuid import UUID

from learnprogress.core.clock import Clock, day_date, day_index, day_start, utc_now
from learnprogress.repos.store import DataStore

CATEGORY_WINDOW_DAYS = 30


class StatsService:
    def __init__(
        self,
        store: DataStore,
        *,
        clock: Clock = utc_now,
        window_days: int = 7,
    ) -> None:
        self._store = store
        self._clock = clock
        self._window_days = window_days

    async def weekly_stats(self, learner_id: UUID) -> dict:
        today = day_index(self._clock())
        days = list(range(today - self._window_days + 1, today + 1))
        category_since = day_start(today - CATEGORY_WINDOW_DAYS + 1)

        async with self._store.transaction() as tx:
            q = tx.queries
            buckets = {b.day: b for b in await q.daily_buckets(learner_id, day_start(days[0]))}
            category_counts = await q.category_update_counts(learner_id, category_since)
            category_seconds = await q.category_time_spent(learner_id)
            total_seconds = await q.total_time_spent(learner_id)
            sessions = await q.session_totals(learner_id)

        activity_by_day = []
        time_spent_by_day = []
        for day in days:
            date = day_date(day)
            bucket = buckets.get(day)
            activity_by_day.append(
                {
                    "date": date.isoformat(),
                    "day_name": date.strftime("%A"),
                    "count": bucket.updates if bucket else 0,
                }
            )
            time_spent_by_day.append(
                {
                    "date": date.isoformat(),
                    "minutes": round(bucket.seconds / 60, 1) if bucket else 0.0,
                }
            )

        average_session_seconds = sum(sessions) / len(sessions) if sessions else 0

        return {
            "activity_by_day": activity_by_day,
            "activity_by_category": [
                {"category": c, "count": n}
                for c, n in sorted(category_counts.items(), key=lambda kv: -kv[1])
            ],
            "time_spent_by_category": [
                {"category": c, "hours": round(s / 3600, 1)}
                for c, s in sorted(category_seconds.items(), key=lambda kv: -kv[1])
            ],
            "time_spent_by_day": time_spent_by_day,
            "total_hours_spent": round(total_seconds / 3600, 1),
            "average_time_per_session": round(average_session_seconds / 60),
        }

    async def learning_streak(self, learner_id: UUID) -> int:
        """Consecutive active days ending today or yesterday."""
        async with self._store.transaction() as tx:
            active = await tx.queries.active_days(learner_id)
        if not active:
            return 0

        today = day_index(self._clock())
        if today - active[0] > 1:
            return 0

        streak = 1
        for newer, older in zip(active, active[1:]):
            if newer - older != 1:
                break
            streak += 1
        return streak
