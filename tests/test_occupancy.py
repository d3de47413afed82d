"""Tests for occupancy, revenue and daily snapshot aggregation."""

from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from occupancy_engine.domain.models import (
    Booking,
    LifecycleState,
    PaymentStatus,
    ReportingPeriod,
    StayInterval,
)
from occupancy_engine.repository.data_repository import DataRepository
from occupancy_engine.services.occupancy_service import (
    OccupancyReportService,
    OccupancyValidationError,
    arrivals_on,
    compute_occupancy,
    departures_on,
    monthly_occupancy_frame,
    occupancy_snapshot,
)
from occupancy_engine.utils.config import get_settings


def make_booking(
    booking_id: str,
    start: str,
    end: str,
    *,
    resource_id: int = 1,
    total_amount: int = 0,
    state: LifecycleState = LifecycleState.CONFIRMED,
) -> Booking:
    return Booking(
        booking_id=booking_id,
        resource_id=resource_id,
        interval=StayInterval(date.fromisoformat(start), date.fromisoformat(end)),
        lifecycle_state=state,
        total_amount=total_amount,
        payment_status=PaymentStatus.DEPOSIT_PAID,
    )


def test_stay_across_month_boundary_splits_nights() -> None:
    stay = make_booking("b1", "2024-03-28", "2024-04-03", total_amount=600_000)

    march = compute_occupancy([stay], ReportingPeriod(2024, 3), resource_count=10)
    april = compute_occupancy([stay], ReportingPeriod(2024, 4), resource_count=10)

    assert march.potential_room_nights == 310
    assert march.occupied_nights == 4
    assert april.potential_room_nights == 300
    assert april.occupied_nights == 2
    assert march.occupied_nights + april.occupied_nights == stay.interval.nights
    assert march.occupancy_rate == pytest.approx(4 / 310)


def test_revenue_and_average_stay_follow_check_in_month() -> None:
    stay = make_booking("b1", "2024-03-28", "2024-04-03", total_amount=600_000)

    march = compute_occupancy([stay], ReportingPeriod(2024, 3), resource_count=10)
    april = compute_occupancy([stay], ReportingPeriod(2024, 4), resource_count=10)

    assert march.revenue == 600_000
    assert march.avg_stay_nights == 6.0
    assert march.check_in_count == 1
    assert april.revenue == 0
    assert april.avg_stay_nights == 0.0
    assert april.check_in_count == 0


def test_stay_spanning_three_months_contributes_only_clipped_nights() -> None:
    stay = make_booking("b1", "2024-01-20", "2024-03-05")
    february = compute_occupancy([stay], ReportingPeriod(2024, 2), resource_count=1)
    assert february.occupied_nights == 29
    assert february.occupancy_rate == 1.0


def test_booking_outside_period_contributes_nothing() -> None:
    stay = make_booking("b1", "2024-05-01", "2024-05-04", total_amount=100)
    metrics = compute_occupancy([stay], ReportingPeriod(2024, 3), resource_count=5)
    assert metrics.occupied_nights == 0
    assert metrics.revenue == 0
    assert metrics.occupancy_rate == 0.0


def test_cancelled_booking_is_excluded_from_all_metrics() -> None:
    cancelled = make_booking(
        "b1",
        "2024-03-02",
        "2024-03-06",
        total_amount=999,
        state=LifecycleState.CANCELLED,
    )
    metrics = compute_occupancy([cancelled], ReportingPeriod(2024, 3), resource_count=5)
    assert metrics.occupied_nights == 0
    assert metrics.revenue == 0
    assert metrics.check_in_count == 0


def test_zero_resources_yield_zero_rate() -> None:
    stay = make_booking("b1", "2024-03-02", "2024-03-06")
    metrics = compute_occupancy([stay], ReportingPeriod(2024, 3), resource_count=0)
    assert metrics.potential_room_nights == 0
    assert metrics.occupancy_rate == 0.0
    assert metrics.occupied_nights == 4


def test_negative_resource_count_raises() -> None:
    with pytest.raises(OccupancyValidationError):
        compute_occupancy([], ReportingPeriod(2024, 3), resource_count=-1)


def test_overlapping_bookings_on_one_room_are_all_counted() -> None:
    first = make_booking("b1", "2024-03-01", "2024-03-05")
    second = make_booking("b2", "2024-03-03", "2024-03-07")
    metrics = compute_occupancy([first, second], ReportingPeriod(2024, 3), resource_count=1)
    assert metrics.occupied_nights == 8


def test_snapshot_counts_distinct_rooms() -> None:
    bookings = [
        make_booking("b1", "2024-03-01", "2024-03-05", resource_id=1),
        make_booking("b2", "2024-03-03", "2024-03-04", resource_id=1),
        make_booking("b3", "2024-03-02", "2024-03-04", resource_id=2),
        make_booking("b4", "2024-03-03", "2024-03-08", resource_id=3, state=LifecycleState.CANCELLED),
    ]
    snapshot = occupancy_snapshot(bookings, date(2024, 3, 3), resource_count=3)
    assert snapshot.occupied_rooms == 2
    assert snapshot.total_rooms == 3
    assert snapshot.occupancy_percent == 67


def test_snapshot_rounds_half_percent_up() -> None:
    bookings = [make_booking("b1", "2024-03-01", "2024-03-05", resource_id=1)]
    snapshot = occupancy_snapshot(bookings, date(2024, 3, 3), resource_count=8)
    assert snapshot.occupancy_percent == 13


def test_snapshot_without_rooms_is_zero_percent() -> None:
    snapshot = occupancy_snapshot([], date(2024, 3, 3), resource_count=0)
    assert snapshot.occupancy_percent == 0


def test_arrivals_and_departures() -> None:
    bookings = [
        make_booking("arrive", "2024-03-03", "2024-03-05"),
        make_booking("leave", "2024-03-01", "2024-03-03"),
        make_booking("stay", "2024-03-02", "2024-03-06"),
        make_booking("cancelled", "2024-03-03", "2024-03-04", state=LifecycleState.CANCELLED),
    ]
    day = date(2024, 3, 3)
    assert [item.booking_id for item in arrivals_on(bookings, day)] == ["arrive"]
    assert [item.booking_id for item in departures_on(bookings, day)] == ["leave"]


def test_monthly_frame_has_one_row_per_month() -> None:
    stay = make_booking("b1", "2024-03-28", "2024-04-03", total_amount=600_000)
    frame = monthly_occupancy_frame([stay], year=2024, resource_count=10)

    assert list(frame["period"]) == [f"2024-{month:02d}" for month in range(1, 13)]
    assert int(frame["occupied_nights"].sum()) == 6
    assert int(frame["revenue"].sum()) == 600_000
    march = frame.loc[frame["period"] == "2024-03"].iloc[0]
    assert march["occupancy_percent"] == pytest.approx(1.3)


def test_monthly_frame_without_rooms_reports_zero_percent() -> None:
    frame = monthly_occupancy_frame([], year=2024, resource_count=0)
    assert (frame["occupancy_percent"] == 0.0).all()


def _build_repository(tmp_path) -> DataRepository:
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "occupancy.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    return repository


def test_report_service_reads_persisted_bookings(tmp_path) -> None:
    repository = _build_repository(tmp_path)
    room_ids = [repository.create_resource(str(number)) for number in range(101, 111)]
    repository.save_bookings_atomic(
        [make_booking("b1", "2024-03-28", "2024-04-03", resource_id=room_ids[0], total_amount=600_000)],
        [0],
    )
    service = OccupancyReportService(repository=repository)

    metrics = service.period_metrics(2024, 3)

    assert metrics.potential_room_nights == 310
    assert metrics.occupied_nights == 4
    assert metrics.revenue == 600_000


def test_report_service_rejects_invalid_month(tmp_path) -> None:
    service = OccupancyReportService(repository=_build_repository(tmp_path))
    with pytest.raises(OccupancyValidationError):
        service.period_metrics(2024, 13)


def test_daily_snapshot_includes_arrivals_and_departures(tmp_path) -> None:
    repository = _build_repository(tmp_path)
    first = repository.create_resource("101")
    second = repository.create_resource("102")
    repository.save_bookings_atomic(
        [
            make_booking("in", "2024-03-03", "2024-03-05", resource_id=first),
            make_booking("out", "2024-03-01", "2024-03-03", resource_id=second),
        ],
        [0, 0],
    )
    result = OccupancyReportService(repository=repository).daily_snapshot(date(2024, 3, 3))

    assert result["snapshot"].occupied_rooms == 1
    assert result["snapshot"].occupancy_percent == 50
    assert [item.booking_id for item in result["arrivals"]] == ["in"]
    assert [item.booking_id for item in result["departures"]] == ["out"]
