"""Tests for half-open stay interval arithmetic."""

from __future__ import annotations

from datetime import date

import pytest

from occupancy_engine.domain.intervals import (
    clip_to_window,
    contains_day,
    expand_days,
    intersect,
    nights,
)
from occupancy_engine.domain.models import InvalidInterval, StayInterval


def interval(start: str, end: str) -> StayInterval:
    return StayInterval(start_date=date.fromisoformat(start), end_date=date.fromisoformat(end))


def test_end_on_or_before_start_is_rejected() -> None:
    with pytest.raises(InvalidInterval):
        interval("2024-03-10", "2024-03-10")
    with pytest.raises(InvalidInterval):
        interval("2024-03-10", "2024-03-09")


def test_invalid_interval_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        interval("2024-03-10", "2024-03-01")


def test_nights_counts_calendar_days() -> None:
    assert interval("2024-03-28", "2024-04-03").nights == 6
    assert nights(interval("2024-02-28", "2024-03-01")) == 2


def test_nights_of_missing_overlap_is_zero() -> None:
    assert nights(None) == 0


def test_intersect_returns_overlap() -> None:
    result = intersect(interval("2024-03-28", "2024-04-03"), interval("2024-04-01", "2024-05-01"))
    assert result == interval("2024-04-01", "2024-04-03")


def test_touching_intervals_do_not_overlap() -> None:
    # checkout day of one stay is the check-in day of the next
    assert intersect(interval("2024-03-01", "2024-03-05"), interval("2024-03-05", "2024-03-07")) is None


def test_disjoint_intervals_do_not_overlap() -> None:
    assert intersect(interval("2024-01-01", "2024-01-03"), interval("2024-02-01", "2024-02-03")) is None


def test_intersect_is_symmetric() -> None:
    a = interval("2024-03-10", "2024-03-20")
    b = interval("2024-03-15", "2024-04-02")
    assert intersect(a, b) == intersect(b, a)


def test_clip_to_window_matches_intersect() -> None:
    stay = interval("2024-02-25", "2024-04-05")
    window = interval("2024-03-01", "2024-04-01")
    assert clip_to_window(stay, window) == intersect(stay, window)
    assert nights(clip_to_window(stay, window)) == 31


def test_contains_day_excludes_checkout_day() -> None:
    stay = interval("2024-03-01", "2024-03-03")
    assert contains_day(stay, date(2024, 3, 1))
    assert contains_day(stay, date(2024, 3, 2))
    assert not contains_day(stay, date(2024, 3, 3))


def test_expand_days_lists_each_night() -> None:
    assert expand_days(interval("2024-03-30", "2024-04-02")) == [
        date(2024, 3, 30),
        date(2024, 3, 31),
        date(2024, 4, 1),
    ]
