"""Occupancy and revenue aggregation over clipped stay intervals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from occupancy_engine.domain.intervals import contains_day, intersect, nights
from occupancy_engine.domain.models import Booking, OccupancyMetrics, ReportingPeriod
from occupancy_engine.repository.data_repository import DataRepository
from occupancy_engine.utils.config import Settings, get_settings
from occupancy_engine.utils.logger import get_logger


logger = get_logger(__name__)


class OccupancyValidationError(ValueError):
    """Raised when aggregation inputs are invalid."""


@dataclass(frozen=True)
class OccupancySnapshot:
    on_date: date
    occupied_rooms: int
    total_rooms: int
    occupancy_percent: int


def _active(bookings: Iterable[Booking]) -> list[Booking]:
    return [booking for booking in bookings if booking.is_active]


def compute_occupancy(
    bookings: Iterable[Booking],
    period: ReportingPeriod,
    resource_count: int,
) -> OccupancyMetrics:
    """Aggregate one reporting period.

    Occupied nights count each booking's nights clipped to the period, so a
    stay spanning a month boundary is split between both months. Overlapping
    bookings on the same room are all counted (room-nights sold).

    Revenue and average stay use a different predicate: only bookings whose
    check-in date falls inside the period contribute, with their full amount
    and full unclipped length.
    """
    if resource_count < 0:
        raise OccupancyValidationError("resource_count must be >= 0")

    period_interval = period.as_interval()
    potential_room_nights = resource_count * nights(period_interval)

    occupied_nights = 0
    revenue = 0
    check_in_nights = 0
    check_in_count = 0
    for booking in _active(bookings):
        occupied_nights += nights(intersect(booking.interval, period_interval))
        if contains_day(period_interval, booking.check_in_date):
            revenue += booking.total_amount
            check_in_nights += booking.interval.nights
            check_in_count += 1

    if potential_room_nights == 0:
        occupancy_rate = 0.0
    else:
        occupancy_rate = occupied_nights / potential_room_nights

    avg_stay_nights = check_in_nights / check_in_count if check_in_count else 0.0

    return OccupancyMetrics(
        occupancy_rate=float(occupancy_rate),
        occupied_nights=occupied_nights,
        potential_room_nights=potential_room_nights,
        revenue=revenue,
        avg_stay_nights=float(avg_stay_nights),
        check_in_count=check_in_count,
    )


def occupancy_snapshot(
    bookings: Iterable[Booking],
    on_date: date,
    resource_count: int,
) -> OccupancySnapshot:
    """Count distinct rooms holding an active stay on a single night."""
    if resource_count < 0:
        raise OccupancyValidationError("resource_count must be >= 0")
    occupied = {
        booking.resource_id
        for booking in _active(bookings)
        if contains_day(booking.interval, on_date)
    }
    occupied_rooms = len(occupied)
    # half-up rounding, so 12.5 reports as 13
    percent = (occupied_rooms * 200 + resource_count) // (2 * resource_count) if resource_count > 0 else 0
    return OccupancySnapshot(
        on_date=on_date,
        occupied_rooms=occupied_rooms,
        total_rooms=resource_count,
        occupancy_percent=int(percent),
    )


def arrivals_on(bookings: Iterable[Booking], day: date) -> list[Booking]:
    return [booking for booking in _active(bookings) if booking.check_in_date == day]


def departures_on(bookings: Iterable[Booking], day: date) -> list[Booking]:
    return [booking for booking in _active(bookings) if booking.check_out_date == day]


def monthly_occupancy_frame(
    bookings: Iterable[Booking],
    year: int,
    resource_count: int,
) -> pd.DataFrame:
    """Return one row of occupancy and revenue metrics per month of ``year``."""
    booking_list = list(bookings)
    rows = []
    for month in range(1, 13):
        period = ReportingPeriod(year=year, month=month)
        metrics = compute_occupancy(booking_list, period, resource_count)
        rows.append({"period": period.label, **metrics.to_dict()})

    frame = pd.DataFrame(rows)
    frame["occupancy_percent"] = np.where(
        frame["potential_room_nights"] > 0,
        (frame["occupancy_rate"] * 100.0).round(1),
        0.0,
    )
    return frame


class OccupancyReportService:
    """Loads bookings through the repository and runs the pure aggregations."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def period_metrics(self, year: int, month: int) -> OccupancyMetrics:
        try:
            period = ReportingPeriod(year=year, month=month)
        except ValueError as exc:
            raise OccupancyValidationError(str(exc)) from exc
        period_interval = period.as_interval()
        bookings = self._repository.list_bookings_between(
            period_interval.start_date,
            period_interval.end_date,
        )
        metrics = compute_occupancy(
            bookings=bookings,
            period=period,
            resource_count=self._repository.count_resources(),
        )
        logger.info(
            "Occupancy computed | period=%s | rate=%.4f | occupied_nights=%s | revenue=%s",
            period.label,
            metrics.occupancy_rate,
            metrics.occupied_nights,
            metrics.revenue,
        )
        return metrics

    def yearly_trend(self, year: int) -> pd.DataFrame:
        bookings = self._repository.list_bookings_between(
            date(year, 1, 1),
            date(year + 1, 1, 1),
        )
        return monthly_occupancy_frame(
            bookings=bookings,
            year=year,
            resource_count=self._repository.count_resources(),
        )

    def daily_snapshot(self, on_date: date) -> dict[str, object]:
        bookings = self._repository.list_bookings(include_cancelled=False)
        snapshot = occupancy_snapshot(
            bookings=bookings,
            on_date=on_date,
            resource_count=self._repository.count_resources(),
        )
        return {
            "snapshot": snapshot,
            "arrivals": arrivals_on(bookings, on_date),
            "departures": departures_on(bookings, on_date),
        }
