"""Half-open date interval arithmetic shared by every engine."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from occupancy_engine.domain.models import StayInterval


def days_between(start: date, end: date) -> int:
    return (end - start).days


def intersect(a: StayInterval, b: StayInterval) -> Optional[StayInterval]:
    """Return the overlap of two intervals, or None when they only touch or miss."""
    start = max(a.start_date, b.start_date)
    end = min(a.end_date, b.end_date)
    if start >= end:
        return None
    return StayInterval(start_date=start, end_date=end)


def clip_to_window(interval: StayInterval, window: StayInterval) -> Optional[StayInterval]:
    return intersect(interval, window)


def nights(interval: Optional[StayInterval]) -> int:
    """Night count of an interval; callers pass the clipped interval."""
    if interval is None:
        return 0
    return days_between(interval.start_date, interval.end_date)


def contains_day(interval: StayInterval, day: date) -> bool:
    return interval.start_date <= day < interval.end_date


def expand_days(interval: StayInterval) -> list[date]:
    return [
        interval.start_date + timedelta(days=offset)
        for offset in range(nights(interval))
    ]
