"""Split one guest charge across several concurrently booked rooms."""

from __future__ import annotations

from datetime import date
from typing import Optional, Sequence
from uuid import uuid4

from occupancy_engine.domain.models import (
    AllocatedCharge,
    AllocationRequest,
    Booking,
    ChargeBreakdown,
    LifecycleState,
    PaymentStatus,
    StayInterval,
)
from occupancy_engine.repository.data_repository import DataRepository
from occupancy_engine.utils.config import Settings, get_settings
from occupancy_engine.utils.logger import get_logger


logger = get_logger(__name__)


class AllocationError(ValueError):
    """Base exception for charge allocation failures."""


class InvalidSelection(AllocationError):
    """Raised when the room selection cannot receive a charge."""


class ChargeValidationError(AllocationError):
    """Raised when charge amounts are inconsistent."""


class UnknownResourceError(AllocationError):
    """Raised when a selected room does not exist."""


def split_evenly(amount: int, parts: int) -> list[int]:
    """Floor-divide ``amount`` and hand the remainder out one unit at a time.

    The first ``amount % parts`` entries receive one extra minor unit, so the
    result always sums to ``amount`` and shares differ by at most one.
    """
    if parts <= 0:
        raise InvalidSelection("cannot split an amount across zero rooms")
    base_share, remainder = divmod(amount, parts)
    return [base_share + 1 if index < remainder else base_share for index in range(parts)]


def _validate_request(request: AllocationRequest) -> None:
    selection = request.resource_selection
    if not selection:
        raise InvalidSelection("at least one room must be selected")
    if len(set(selection)) != len(selection):
        raise InvalidSelection("a room may appear only once in the selection")
    if request.total_charge < 0:
        raise ChargeValidationError("total_charge must be >= 0")
    if request.deposit_paid < 0:
        raise ChargeValidationError("deposit_paid must be >= 0")
    if request.deposit_paid > request.total_charge:
        raise ChargeValidationError("deposit_paid cannot exceed total_charge")
    if request.payment_status is PaymentStatus.UNPAID and request.deposit_paid:
        raise ChargeValidationError("an unpaid booking cannot carry a deposit")
    if request.payment_status is PaymentStatus.FULLY_PAID and request.deposit_paid != request.total_charge:
        raise ChargeValidationError("a fully paid booking must settle the whole total_charge")


def allocate_charge(request: AllocationRequest) -> list[AllocatedCharge]:
    """Return exactly one charge per selected room, in selection order.

    Deposit handling follows the payment tag, never the amounts: a deposit is
    split like the total; a fully paid booking settles each room's own share;
    an unpaid booking carries no deposit.
    """
    _validate_request(request)
    parts = len(request.resource_selection)
    total_shares = split_evenly(request.total_charge, parts)

    if request.payment_status is PaymentStatus.FULLY_PAID:
        deposit_shares = list(total_shares)
    elif request.payment_status is PaymentStatus.DEPOSIT_PAID:
        deposit_shares = split_evenly(request.deposit_paid, parts)
    else:
        deposit_shares = [0] * parts

    return [
        AllocatedCharge(
            resource_id=resource_id,
            share_of_total=share_of_total,
            share_of_deposit=share_of_deposit,
        )
        for resource_id, share_of_total, share_of_deposit in zip(
            request.resource_selection,
            total_shares,
            deposit_shares,
        )
    ]


class BookingAllocationService:
    """Turns one multi-room reservation form into one booking per room."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def create_bookings(
        self,
        *,
        check_in: date,
        check_out: date,
        charge: ChargeBreakdown,
        resource_selection: Sequence[int],
        payment_status: PaymentStatus,
        deposit_paid: int = 0,
        guest_name: str = "",
        order_id: Optional[str] = None,
    ) -> list[tuple[Booking, AllocatedCharge]]:
        """Allocate the charge and persist every room's booking in one transaction."""
        interval = StayInterval(start_date=check_in, end_date=check_out)
        if payment_status is PaymentStatus.FULLY_PAID:
            deposit_paid = charge.total
        charges = allocate_charge(
            AllocationRequest(
                total_charge=charge.total,
                deposit_paid=deposit_paid,
                resource_selection=tuple(resource_selection),
                payment_status=payment_status,
            )
        )

        known_ids = {resource.resource_id for resource in self._repository.list_resources()}
        missing = [item.resource_id for item in charges if item.resource_id not in known_ids]
        if missing:
            raise UnknownResourceError(f"unknown room ids: {missing}")

        base_order_id = order_id or f"RES-{uuid4().hex[:8].upper()}"
        bookings = [
            Booking(
                booking_id=str(uuid4()),
                resource_id=item.resource_id,
                interval=interval,
                lifecycle_state=LifecycleState.CONFIRMED,
                total_amount=item.share_of_total,
                payment_status=payment_status,
                guest_name=guest_name,
                order_id=base_order_id if len(charges) == 1 else f"{base_order_id}-{index + 1}",
            )
            for index, item in enumerate(charges)
        ]
        self._repository.save_bookings_atomic(
            bookings,
            [item.share_of_deposit for item in charges],
        )
        logger.info(
            "Multi-room booking created | order_id=%s | rooms=%s | total=%s | nights=%s",
            base_order_id,
            len(bookings),
            charge.total,
            interval.nights,
        )
        return list(zip(bookings, charges))
