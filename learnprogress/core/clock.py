"""Epoch-second time helpers.

Progress rows store timestamps as integer seconds since the epoch (UTC).
Daily and hourly rollups bucket on integer division, which the database
can evaluate in a GROUP BY without any timezone functions.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

Clock = Callable[[], int]


def utc_now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def day_index(ts: int) -> int:
    return ts // SECONDS_PER_DAY


def hour_index(ts: int) -> int:
    return ts // SECONDS_PER_HOUR


def day_start(index: int) -> int:
    return index * SECONDS_PER_DAY


def day_date(index: int) -> datetime.date:
    return datetime.datetime.fromtimestamp(day_start(index), datetime.UTC).date()
