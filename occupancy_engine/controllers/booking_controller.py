"""HTTP controller layer for occupancy reports, the room map and bookings."""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator, model_validator

from occupancy_engine.controllers.dependencies import (
    get_allocation_service,
    get_occupancy_service,
    get_repository,
    get_timeline_service,
)
from occupancy_engine.domain.constraints import LifecycleTransitionError
from occupancy_engine.domain.models import (
    AllocationRequest,
    Booking,
    ChargeBreakdown,
    InvalidInterval,
    LifecycleState,
    PaymentStatus,
)
from occupancy_engine.repository.data_repository import BookingNotFoundError, DataRepository
from occupancy_engine.services.allocation_service import (
    AllocationError,
    BookingAllocationService,
    UnknownResourceError,
    allocate_charge,
)
from occupancy_engine.services.occupancy_service import (
    OccupancyReportService,
    OccupancyValidationError,
)
from occupancy_engine.services.timeline_service import TimelineService, TimelineValidationError
from occupancy_engine.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["bookings"])


class BookingResponse(BaseModel):
    booking_id: str
    resource_id: int
    order_id: Optional[str] = None
    guest_name: str
    check_in_date: date
    check_out_date: date
    nights: int = Field(gt=0)
    lifecycle_state: LifecycleState
    payment_status: Optional[PaymentStatus] = None
    total_amount: int = Field(ge=0)

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            booking_id=booking.booking_id,
            resource_id=booking.resource_id,
            order_id=booking.order_id,
            guest_name=booking.guest_name,
            check_in_date=booking.check_in_date,
            check_out_date=booking.check_out_date,
            nights=booking.interval.nights,
            lifecycle_state=booking.lifecycle_state,
            payment_status=booking.payment_status,
            total_amount=booking.total_amount,
        )


class OccupancyResponse(BaseModel):
    period: str
    occupancy_rate: float = Field(ge=0.0)
    occupied_nights: int = Field(ge=0)
    potential_room_nights: int = Field(ge=0)
    revenue: int = Field(ge=0)
    avg_stay_nights: float = Field(ge=0.0)
    check_in_count: int = Field(ge=0)


class OccupancyTrendResponse(BaseModel):
    year: int
    months: list[OccupancyResponse]


class SnapshotResponse(BaseModel):
    on_date: date
    occupied_rooms: int = Field(ge=0)
    total_rooms: int = Field(ge=0)
    occupancy_percent: int = Field(ge=0)
    arrivals: list[BookingResponse]
    departures: list[BookingResponse]


class TimelineRequest(BaseModel):
    start_date: Optional[date] = None
    days: Optional[list[date]] = None
    room_ids: Optional[list[int]] = None
    today: Optional[date] = None

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: Optional[list[date]]) -> Optional[list[date]]:
        if value is not None and not value:
            raise ValueError("days must contain at least one day when provided")
        return value


class RoomResponse(BaseModel):
    resource_id: int
    label: str


class PlacedBlockResponse(BaseModel):
    resource_id: int
    day_index: int = Field(ge=0)
    width_in_days: int = Field(gt=0)
    display_state: str
    booking: BookingResponse


class TimelineResponse(BaseModel):
    days: list[date]
    rooms: list[RoomResponse]
    blocks: list[PlacedBlockResponse]


class ChargeFields(BaseModel):
    rate: int = Field(ge=0)
    tax: int = Field(default=0, ge=0)
    service: int = Field(default=0, ge=0)
    deposit_paid: int = Field(default=0, ge=0)
    payment_status: PaymentStatus
    resource_selection: list[int] = Field(min_length=1)


class AllocatedChargeResponse(BaseModel):
    resource_id: int
    share_of_total: int = Field(ge=0)
    share_of_deposit: int = Field(ge=0)


class SplitPreviewResponse(BaseModel):
    total_charge: int = Field(ge=0)
    charges: list[AllocatedChargeResponse]


class CreateBookingRequest(ChargeFields):
    check_in: date
    check_out: date
    guest_name: str = Field(default="", max_length=200)
    order_id: Optional[str] = Field(default=None, min_length=1, max_length=64)

    @model_validator(mode="after")
    def validate_dates(self) -> "CreateBookingRequest":
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


class CreatedBookingRow(BaseModel):
    booking: BookingResponse
    share_of_deposit: int = Field(ge=0)


class CreateBookingResponse(BaseModel):
    total_charge: int = Field(ge=0)
    bookings: list[CreatedBookingRow]


class StateChangeRequest(BaseModel):
    lifecycle_state: LifecycleState


@router.get("/occupancy", response_model=OccupancyResponse, status_code=status.HTTP_200_OK)
async def get_occupancy(
    year: int = Query(ge=1900, le=9998),
    month: int = Query(ge=1, le=12),
    service: OccupancyReportService = Depends(get_occupancy_service),
) -> OccupancyResponse:
    try:
        metrics = service.period_metrics(year=year, month=month)
        return OccupancyResponse(period=f"{year:04d}-{month:02d}", **metrics.to_dict())
    except OccupancyValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected occupancy failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute occupancy",
        ) from exc


@router.get(
    "/occupancy/trend",
    response_model=OccupancyTrendResponse,
    status_code=status.HTTP_200_OK,
)
async def get_occupancy_trend(
    year: int = Query(ge=1900, le=9998),
    service: OccupancyReportService = Depends(get_occupancy_service),
) -> OccupancyTrendResponse:
    try:
        frame = service.yearly_trend(year)
        months = [
            OccupancyResponse(
                period=str(row["period"]),
                occupancy_rate=float(row["occupancy_rate"]),
                occupied_nights=int(row["occupied_nights"]),
                potential_room_nights=int(row["potential_room_nights"]),
                revenue=int(row["revenue"]),
                avg_stay_nights=float(row["avg_stay_nights"]),
                check_in_count=int(row["check_in_count"]),
            )
            for row in frame.to_dict(orient="records")
        ]
        return OccupancyTrendResponse(year=year, months=months)
    except OccupancyValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected occupancy trend failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute occupancy trend",
        ) from exc


@router.get(
    "/occupancy/snapshot",
    response_model=SnapshotResponse,
    status_code=status.HTTP_200_OK,
)
async def get_occupancy_snapshot(
    on_date: date,
    service: OccupancyReportService = Depends(get_occupancy_service),
) -> SnapshotResponse:
    result = service.daily_snapshot(on_date)
    snapshot = result["snapshot"]
    return SnapshotResponse(
        on_date=snapshot.on_date,
        occupied_rooms=snapshot.occupied_rooms,
        total_rooms=snapshot.total_rooms,
        occupancy_percent=snapshot.occupancy_percent,
        arrivals=[BookingResponse.from_booking(item) for item in result["arrivals"]],
        departures=[BookingResponse.from_booking(item) for item in result["departures"]],
    )


@router.post("/timeline", response_model=TimelineResponse, status_code=status.HTTP_200_OK)
async def build_timeline(
    payload: TimelineRequest,
    service: TimelineService = Depends(get_timeline_service),
) -> TimelineResponse:
    """Lay out the room map for a window of days."""
    try:
        window = service.build_window(
            days=payload.days,
            start=payload.start_date,
            resource_ids=payload.room_ids,
        )
        blocks = service.build_timeline(window, today=payload.today)
        return TimelineResponse(
            days=list(window.days),
            rooms=[
                RoomResponse(resource_id=room.resource_id, label=room.label)
                for room in window.resources
            ],
            blocks=[
                PlacedBlockResponse(
                    resource_id=block.resource_id,
                    day_index=block.day_index,
                    width_in_days=block.width_in_days,
                    display_state=block.display_state.value,
                    booking=BookingResponse.from_booking(block.booking),
                )
                for block in blocks
            ],
        )
    except TimelineValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected timeline failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build timeline",
        ) from exc


@router.post(
    "/bookings/preview_split",
    response_model=SplitPreviewResponse,
    status_code=status.HTTP_200_OK,
)
async def preview_split(payload: ChargeFields) -> SplitPreviewResponse:
    """Show how a charge would be split without writing anything."""
    charge = ChargeBreakdown(rate=payload.rate, tax=payload.tax, service=payload.service)
    deposit_paid = (
        charge.total
        if payload.payment_status is PaymentStatus.FULLY_PAID
        else payload.deposit_paid
    )
    try:
        charges = allocate_charge(
            AllocationRequest(
                total_charge=charge.total,
                deposit_paid=deposit_paid,
                resource_selection=tuple(payload.resource_selection),
                payment_status=payload.payment_status,
            )
        )
    except AllocationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return SplitPreviewResponse(
        total_charge=charge.total,
        charges=[
            AllocatedChargeResponse(
                resource_id=item.resource_id,
                share_of_total=item.share_of_total,
                share_of_deposit=item.share_of_deposit,
            )
            for item in charges
        ],
    )


@router.post(
    "/bookings/allocate",
    response_model=CreateBookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_bookings(
    payload: CreateBookingRequest,
    service: BookingAllocationService = Depends(get_allocation_service),
) -> CreateBookingResponse:
    """Create one booking per selected room from a single guest charge."""
    charge = ChargeBreakdown(rate=payload.rate, tax=payload.tax, service=payload.service)
    try:
        created = service.create_bookings(
            check_in=payload.check_in,
            check_out=payload.check_out,
            charge=charge,
            resource_selection=payload.resource_selection,
            payment_status=payload.payment_status,
            deposit_paid=payload.deposit_paid,
            guest_name=payload.guest_name,
            order_id=payload.order_id,
        )
    except UnknownResourceError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (AllocationError, InvalidInterval) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except sqlite3.IntegrityError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Order ID already exists",
        ) from exc
    return CreateBookingResponse(
        total_charge=charge.total,
        bookings=[
            CreatedBookingRow(
                booking=BookingResponse.from_booking(booking),
                share_of_deposit=allocated.share_of_deposit,
            )
            for booking, allocated in created
        ],
    )


@router.patch(
    "/bookings/{booking_id}/state",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
async def change_booking_state(
    booking_id: str,
    payload: StateChangeRequest,
    repository: DataRepository = Depends(get_repository),
) -> BookingResponse:
    try:
        booking = repository.update_booking_state(booking_id, payload.lifecycle_state)
    except BookingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except LifecycleTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return BookingResponse.from_booking(booking)
