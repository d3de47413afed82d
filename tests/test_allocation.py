"""Tests for multi-room charge allocation and atomic booking creation."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import date

import pytest

from occupancy_engine.domain.models import (
    AllocationRequest,
    ChargeBreakdown,
    LifecycleState,
    PaymentStatus,
)
from occupancy_engine.repository.data_repository import DataRepository
from occupancy_engine.services.allocation_service import (
    BookingAllocationService,
    ChargeValidationError,
    InvalidSelection,
    UnknownResourceError,
    allocate_charge,
    split_evenly,
)
from occupancy_engine.utils.config import get_settings


def request(total: int, deposit: int, rooms, status=PaymentStatus.DEPOSIT_PAID) -> AllocationRequest:
    return AllocationRequest(
        total_charge=total,
        deposit_paid=deposit,
        resource_selection=tuple(rooms),
        payment_status=status,
    )


def test_remainder_goes_to_first_rooms_in_selection_order() -> None:
    charges = allocate_charge(request(1_000_001, 0, [7, 3, 5], PaymentStatus.UNPAID))

    assert [item.resource_id for item in charges] == [7, 3, 5]
    assert [item.share_of_total for item in charges] == [333_334, 333_334, 333_333]
    assert sum(item.share_of_total for item in charges) == 1_000_001


def test_fully_paid_deposit_equals_each_rooms_share() -> None:
    charges = allocate_charge(request(500_000, 500_000, [1, 2], PaymentStatus.FULLY_PAID))

    assert [(item.share_of_total, item.share_of_deposit) for item in charges] == [
        (250_000, 250_000),
        (250_000, 250_000),
    ]


@pytest.mark.parametrize("deposit", [0, 99])
def test_fully_paid_requires_deposit_equal_to_total(deposit) -> None:
    with pytest.raises(ChargeValidationError):
        allocate_charge(request(100, deposit, [1, 2], PaymentStatus.FULLY_PAID))


def test_deposit_is_split_like_the_total() -> None:
    charges = allocate_charge(request(900_000, 100_001, [1, 2, 3]))

    assert [item.share_of_deposit for item in charges] == [33_334, 33_334, 33_333]
    assert sum(item.share_of_deposit for item in charges) == 100_001


def test_deposit_equal_to_total_stays_deposit_paid() -> None:
    charges = allocate_charge(request(10, 10, [1, 2, 3]))
    assert [item.share_of_deposit for item in charges] == [4, 3, 3]


def test_unpaid_booking_carries_no_deposit() -> None:
    charges = allocate_charge(request(10, 0, [1, 2], PaymentStatus.UNPAID))
    assert [item.share_of_deposit for item in charges] == [0, 0]


@pytest.mark.parametrize(
    ("total", "deposit", "rooms"),
    [
        (0, 0, [1]),
        (1, 0, [1, 2, 3]),
        (999_999_999, 123_457, [4, 8, 15, 16, 23, 42]),
        (17, 17, [1, 2, 3, 4, 5, 6, 7]),
    ],
)
def test_allocation_conserves_amounts_within_one_unit(total, deposit, rooms) -> None:
    charges = allocate_charge(request(total, deposit, rooms))
    totals = [item.share_of_total for item in charges]

    assert len(charges) == len(rooms)
    assert sum(totals) == total
    assert sum(item.share_of_deposit for item in charges) == deposit
    assert max(totals) - min(totals) <= 1


def test_empty_selection_fails_fast() -> None:
    with pytest.raises(InvalidSelection):
        allocate_charge(request(100, 0, []))


def test_duplicate_room_in_selection_is_rejected() -> None:
    with pytest.raises(InvalidSelection):
        allocate_charge(request(100, 0, [1, 1]))


def test_deposit_above_total_is_rejected() -> None:
    with pytest.raises(ChargeValidationError):
        allocate_charge(request(100, 101, [1]))


def test_unpaid_with_deposit_is_rejected() -> None:
    with pytest.raises(ChargeValidationError):
        allocate_charge(request(100, 10, [1], PaymentStatus.UNPAID))


def test_split_evenly_rejects_zero_parts() -> None:
    with pytest.raises(InvalidSelection):
        split_evenly(10, 0)


def _build_service(tmp_path) -> tuple[BookingAllocationService, DataRepository, list[int]]:
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "allocation.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    room_ids = [repository.create_resource(number) for number in ("101", "102", "103")]
    return BookingAllocationService(repository=repository, settings=settings), repository, room_ids


def test_create_bookings_persists_one_booking_per_room(tmp_path) -> None:
    service, repository, room_ids = _build_service(tmp_path)

    created = service.create_bookings(
        check_in=date(2024, 3, 28),
        check_out=date(2024, 4, 3),
        charge=ChargeBreakdown(rate=900_000, tax=90_000, service=10_001),
        resource_selection=room_ids,
        payment_status=PaymentStatus.DEPOSIT_PAID,
        deposit_paid=300_000,
        guest_name="Ada",
        order_id="RES-42",
    )

    assert [booking.order_id for booking, _ in created] == ["RES-42-1", "RES-42-2", "RES-42-3"]
    assert [booking.total_amount for booking, _ in created] == [333_334, 333_334, 333_333]
    assert repository.count_bookings() == 3
    for booking, charge in created:
        stored = repository.get_booking(booking.booking_id)
        assert stored == booking
        assert stored.lifecycle_state is LifecycleState.CONFIRMED
        assert repository.get_deposit_amount(booking.booking_id) == charge.share_of_deposit
    assert sum(repository.get_deposit_amount(b.booking_id) for b, _ in created) == 300_000


def test_single_room_booking_keeps_order_id(tmp_path) -> None:
    service, _, room_ids = _build_service(tmp_path)
    created = service.create_bookings(
        check_in=date(2024, 3, 1),
        check_out=date(2024, 3, 2),
        charge=ChargeBreakdown(rate=100),
        resource_selection=room_ids[:1],
        payment_status=PaymentStatus.UNPAID,
        order_id="RES-1",
    )
    assert created[0][0].order_id == "RES-1"


def test_fully_paid_booking_settles_every_room(tmp_path) -> None:
    service, repository, room_ids = _build_service(tmp_path)
    created = service.create_bookings(
        check_in=date(2024, 3, 1),
        check_out=date(2024, 3, 3),
        charge=ChargeBreakdown(rate=500_000),
        resource_selection=room_ids[:2],
        payment_status=PaymentStatus.FULLY_PAID,
    )
    assert [repository.get_deposit_amount(b.booking_id) for b, _ in created] == [250_000, 250_000]


def test_unknown_room_writes_nothing(tmp_path) -> None:
    service, repository, room_ids = _build_service(tmp_path)
    with pytest.raises(UnknownResourceError):
        service.create_bookings(
            check_in=date(2024, 3, 1),
            check_out=date(2024, 3, 2),
            charge=ChargeBreakdown(rate=100),
            resource_selection=[room_ids[0], 999],
            payment_status=PaymentStatus.UNPAID,
        )
    assert repository.count_bookings() == 0


def test_failed_insert_rolls_back_every_room(tmp_path) -> None:
    service, repository, room_ids = _build_service(tmp_path)
    service.create_bookings(
        check_in=date(2024, 3, 1),
        check_out=date(2024, 3, 2),
        charge=ChargeBreakdown(rate=100),
        resource_selection=room_ids[:1],
        payment_status=PaymentStatus.UNPAID,
        order_id="RES-7-2",
    )

    # the second generated order id collides with the existing reservation
    with pytest.raises(sqlite3.IntegrityError):
        service.create_bookings(
            check_in=date(2024, 3, 5),
            check_out=date(2024, 3, 6),
            charge=ChargeBreakdown(rate=300),
            resource_selection=room_ids,
            payment_status=PaymentStatus.UNPAID,
            order_id="RES-7",
        )
    assert repository.count_bookings() == 1


def test_invalid_stay_is_rejected_before_any_write(tmp_path) -> None:
    service, repository, room_ids = _build_service(tmp_path)
    with pytest.raises(ValueError):
        service.create_bookings(
            check_in=date(2024, 3, 2),
            check_out=date(2024, 3, 2),
            charge=ChargeBreakdown(rate=100),
            resource_selection=room_ids,
            payment_status=PaymentStatus.UNPAID,
        )
    assert repository.count_bookings() == 0
