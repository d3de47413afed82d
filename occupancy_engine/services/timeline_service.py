"""Day-by-room timeline layout with window clipping and overlap tolerance."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from occupancy_engine.domain.intervals import intersect, nights
from occupancy_engine.domain.models import (
    Booking,
    DisplayState,
    LifecycleState,
    PaymentStatus,
    PlacedBlock,
    TimelineWindow,
)
from occupancy_engine.repository.data_repository import DataRepository
from occupancy_engine.utils.config import Settings, get_settings
from occupancy_engine.utils.logger import get_logger


logger = get_logger(__name__)


class TimelineValidationError(ValueError):
    """Raised when a requested timeline window is invalid."""


@dataclass(frozen=True)
class UnknownResourceReference:
    """A booking pointing at a room that is not part of the visible window."""

    booking_id: str
    resource_id: int


_PAYMENT_DISPLAY = {
    PaymentStatus.FULLY_PAID: DisplayState.FULLY_PAID,
    PaymentStatus.DEPOSIT_PAID: DisplayState.DEPOSIT_PAID,
    PaymentStatus.UNPAID: DisplayState.UNPAID,
}


def display_state(booking: Booking, today: Optional[date] = None) -> DisplayState:
    """Styling state of a block; never used for layout math.

    Maintenance holds and cancellations win, then a tracked payment status,
    then the lifecycle state.
    """
    if booking.is_maintenance:
        return DisplayState.MAINTENANCE
    if booking.lifecycle_state is LifecycleState.CANCELLED:
        return DisplayState.CANCELLED
    if booking.payment_status is not None:
        return _PAYMENT_DISPLAY[booking.payment_status]
    if booking.lifecycle_state is LifecycleState.CHECKED_IN:
        if today is not None and booking.check_out_date == today:
            return DisplayState.DUE_OUT
        return DisplayState.CHECKED_IN
    if booking.lifecycle_state is LifecycleState.CHECKED_OUT:
        return DisplayState.CHECKED_OUT
    return DisplayState.CONFIRMED


def find_unknown_resource_references(
    bookings: Iterable[Booking],
    window: TimelineWindow,
) -> list[UnknownResourceReference]:
    known = {resource.resource_id for resource in window.resources}
    return [
        UnknownResourceReference(booking_id=booking.booking_id, resource_id=booking.resource_id)
        for booking in bookings
        if booking.is_active and booking.resource_id not in known
    ]


def layout_timeline(
    bookings: Iterable[Booking],
    window: TimelineWindow,
    today: Optional[date] = None,
) -> list[PlacedBlock]:
    """Place one block per visible stay at the day it starts.

    Blocks are sparse: a multi-night stay is a single block whose width is its
    night count. A stay that began before the first visible day gets a virtual
    start on that day and the width of its clipped part. Overlapping stays on
    one room all render, in input order. Bookings on rooms missing from the
    window produce nothing.
    """
    window_interval = window.as_interval()
    if window_interval is None or not window.resources:
        return []

    placements: dict[int, list[tuple[Booking, date, int]]] = defaultdict(list)
    for booking in bookings:
        if not booking.is_active:
            continue
        clipped = intersect(booking.interval, window_interval)
        if clipped is None:
            continue
        if booking.interval.start_date < window_interval.start_date:
            placements[booking.resource_id].append(
                (booking, window_interval.start_date, nights(clipped))
            )
        else:
            placements[booking.resource_id].append(
                (booking, booking.interval.start_date, booking.interval.nights)
            )

    blocks: list[PlacedBlock] = []
    for resource in window.resources:
        resource_placements = placements.get(resource.resource_id, [])
        if not resource_placements:
            continue
        for day_index, day in enumerate(window.days):
            for booking, block_start, width in resource_placements:
                if block_start != day:
                    continue
                blocks.append(
                    PlacedBlock(
                        resource_id=resource.resource_id,
                        day_index=day_index,
                        width_in_days=width,
                        booking=booking,
                        display_state=display_state(booking, today),
                    )
                )
    return blocks


def consecutive_days(start: date, count: int) -> tuple[date, ...]:
    return tuple(start + timedelta(days=offset) for offset in range(count))


class TimelineService:
    """Builds the room map for a window of days from persisted bookings."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def build_window(
        self,
        days: Sequence[date] | None = None,
        start: Optional[date] = None,
        resource_ids: Sequence[int] | None = None,
    ) -> TimelineWindow:
        if days:
            visible_days = tuple(days)
        else:
            visible_days = consecutive_days(
                start or date.today(),
                self._settings.timeline_default_window_days,
            )
        if len(visible_days) > self._settings.timeline_max_window_days:
            raise TimelineValidationError(
                f"window may show at most {self._settings.timeline_max_window_days} days"
            )
        if len(set(visible_days)) != len(visible_days):
            raise TimelineValidationError("window days must be unique")

        resources = self._repository.list_resources()
        if resource_ids:
            by_id = {resource.resource_id: resource for resource in resources}
            resources = [by_id[rid] for rid in resource_ids if rid in by_id]
        return TimelineWindow(resources=tuple(resources), days=visible_days)

    def build_timeline(
        self,
        window: TimelineWindow,
        today: Optional[date] = None,
    ) -> list[PlacedBlock]:
        window_interval = window.as_interval()
        if window_interval is None:
            return []
        bookings = self._repository.list_bookings_between(
            window_interval.start_date,
            window_interval.end_date,
        )
        for reference in find_unknown_resource_references(bookings, window):
            logger.warning(
                "Dropping booking outside visible rooms | booking_id=%s | resource_id=%s",
                reference.booking_id,
                reference.resource_id,
            )
        blocks = layout_timeline(bookings, window, today=today or date.today())
        logger.info(
            "Timeline built | rooms=%s | days=%s | blocks=%s",
            len(window.resources),
            len(window.days),
            len(blocks),
        )
        return blocks
