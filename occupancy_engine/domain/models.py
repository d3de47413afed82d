"""Domain models for stay intervals, bookings, charges and shift rosters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from enum import Enum
from typing import Optional


class InvalidInterval(ValueError):
    """Raised when a stay interval does not cover at least one night."""


@dataclass(frozen=True)
class StayInterval:
    """Half-open ``[start_date, end_date)`` calendar-date range."""

    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.end_date <= self.start_date:
            raise InvalidInterval(
                f"end_date {self.end_date.isoformat()} must be after "
                f"start_date {self.start_date.isoformat()}"
            )

    @property
    def nights(self) -> int:
        return (self.end_date - self.start_date).days


@dataclass(frozen=True)
class Resource:
    resource_id: int
    label: str
    capacity_unit: int = 1


class LifecycleState(str, Enum):
    CONFIRMED = "Confirmed"
    CHECKED_IN = "Checked_In"
    CHECKED_OUT = "Checked_Out"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    DEPOSIT_PAID = "Deposit Paid"
    FULLY_PAID = "Fully Paid"


@dataclass(frozen=True)
class Booking:
    """Reservation of one resource; amounts are integer minor currency units."""

    booking_id: str
    resource_id: int
    interval: StayInterval
    lifecycle_state: LifecycleState
    total_amount: int
    payment_status: Optional[PaymentStatus] = None
    guest_name: str = ""
    order_id: Optional[str] = None
    is_maintenance: bool = False

    @property
    def is_active(self) -> bool:
        return self.lifecycle_state is not LifecycleState.CANCELLED

    @property
    def check_in_date(self) -> date:
        return self.interval.start_date

    @property
    def check_out_date(self) -> date:
        return self.interval.end_date


@dataclass(frozen=True)
class ReportingPeriod:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError("month must be between 1 and 12")

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def as_interval(self) -> StayInterval:
        first = date(self.year, self.month, 1)
        if self.month == 12:
            next_first = date(self.year + 1, 1, 1)
        else:
            next_first = date(self.year, self.month + 1, 1)
        return StayInterval(start_date=first, end_date=next_first)


@dataclass(frozen=True)
class TimelineWindow:
    """Visible rooms and days; both keep the caller's order."""

    resources: tuple[Resource, ...]
    days: tuple[date, ...]

    def as_interval(self) -> Optional[StayInterval]:
        if not self.days:
            return None
        return StayInterval(
            start_date=min(self.days),
            end_date=max(self.days) + timedelta(days=1),
        )


class DisplayState(str, Enum):
    MAINTENANCE = "Maintenance"
    CANCELLED = "Cancelled"
    FULLY_PAID = "Fully Paid"
    DEPOSIT_PAID = "Deposit Paid"
    UNPAID = "Unpaid"
    DUE_OUT = "DueOut"
    CHECKED_IN = "CheckedIn"
    CONFIRMED = "Confirmed"
    CHECKED_OUT = "CheckedOut"


@dataclass(frozen=True)
class PlacedBlock:
    resource_id: int
    day_index: int
    width_in_days: int
    booking: Booking
    display_state: DisplayState


@dataclass(frozen=True)
class ChargeBreakdown:
    rate: int
    tax: int = 0
    service: int = 0

    @property
    def total(self) -> int:
        return self.rate + self.tax + self.service


@dataclass(frozen=True)
class AllocationRequest:
    total_charge: int
    deposit_paid: int
    resource_selection: tuple[int, ...]
    payment_status: PaymentStatus = PaymentStatus.DEPOSIT_PAID


@dataclass(frozen=True)
class AllocatedCharge:
    resource_id: int
    share_of_total: int
    share_of_deposit: int


@dataclass(frozen=True)
class OccupancyMetrics:
    occupancy_rate: float
    occupied_nights: int
    potential_room_nights: int
    revenue: int
    avg_stay_nights: float
    check_in_count: int

    def to_dict(self) -> dict[str, float | int]:
        return {
            "occupancy_rate": self.occupancy_rate,
            "occupied_nights": self.occupied_nights,
            "potential_room_nights": self.potential_room_nights,
            "revenue": self.revenue,
            "avg_stay_nights": self.avg_stay_nights,
            "check_in_count": self.check_in_count,
        }


class ShiftType(str, Enum):
    MORNING = "Morning"
    EVENING = "Evening"


@dataclass(frozen=True)
class ShiftAssignment:
    staff_id: str
    date: date
    shift_type: ShiftType
    start_time: time
    end_time: time
    assignment_id: Optional[int] = None

    @property
    def cell(self) -> tuple[str, date]:
        return (self.staff_id, self.date)


@dataclass(frozen=True)
class WeekDiff:
    to_delete: list[ShiftAssignment] = field(default_factory=list)
    to_upsert: list[ShiftAssignment] = field(default_factory=list)
