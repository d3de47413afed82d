"""Domain-level validation rules for booking lifecycle and engine settings."""

from __future__ import annotations

from occupancy_engine.domain.models import LifecycleState
from occupancy_engine.utils.config import Settings


class LifecycleTransitionError(ValueError):
    """Raised when a booking is moved along an edge the lifecycle does not have."""


ALLOWED_TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.CONFIRMED: frozenset(
        {LifecycleState.CHECKED_IN, LifecycleState.CANCELLED}
    ),
    LifecycleState.CHECKED_IN: frozenset(
        {LifecycleState.CHECKED_OUT, LifecycleState.CANCELLED}
    ),
    LifecycleState.CHECKED_OUT: frozenset(),
    LifecycleState.CANCELLED: frozenset(),
}


def is_terminal(state: LifecycleState) -> bool:
    return not ALLOWED_TRANSITIONS[state]


def validate_transition(current: LifecycleState, target: LifecycleState) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise LifecycleTransitionError(
            f"cannot move booking from {current.value} to {target.value}"
        )


def validate_settings(settings: Settings) -> None:
    if not settings.synthetic_room_numbers:
        raise ValueError("synthetic_room_numbers must not be empty")
    if settings.synthetic_booking_count < 0:
        raise ValueError("synthetic_booking_count must be >= 0")
    if settings.synthetic_horizon_days <= 0:
        raise ValueError("synthetic_horizon_days must be > 0")
    if settings.synthetic_max_stay_nights <= 0:
        raise ValueError("synthetic_max_stay_nights must be > 0")
    if settings.synthetic_nightly_rate < 0:
        raise ValueError("synthetic_nightly_rate must be >= 0")
    if settings.timeline_default_window_days <= 0:
        raise ValueError("timeline_default_window_days must be > 0")
    if settings.timeline_max_window_days < settings.timeline_default_window_days:
        raise ValueError("timeline_max_window_days must be >= timeline_default_window_days")
    if not 0 <= settings.shift_week_start_weekday <= 6:
        raise ValueError("shift_week_start_weekday must be between 0 and 6")
