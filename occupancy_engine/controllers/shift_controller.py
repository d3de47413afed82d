"""HTTP controller layer for the weekly staff shift grid."""

from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from occupancy_engine.controllers.dependencies import get_shift_service
from occupancy_engine.domain.models import ShiftAssignment, ShiftType
from occupancy_engine.services.shift_service import (
    NonAtomicPublishFailure,
    PublishReport,
    ShiftRotationError,
    ShiftRotationService,
    StaleWeekSnapshotError,
    advance_shift,
    week_days,
)
from occupancy_engine.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["shifts"])


class ShiftAssignmentModel(BaseModel):
    assignment_id: Optional[int] = Field(default=None, gt=0)
    staff_id: str = Field(min_length=1, max_length=64)
    date: date
    shift_type: ShiftType
    start_time: time
    end_time: time

    def to_domain(self) -> ShiftAssignment:
        return ShiftAssignment(
            staff_id=self.staff_id,
            date=self.date,
            shift_type=self.shift_type,
            start_time=self.start_time,
            end_time=self.end_time,
            assignment_id=self.assignment_id,
        )

    @classmethod
    def from_domain(cls, assignment: ShiftAssignment) -> "ShiftAssignmentModel":
        return cls(
            assignment_id=assignment.assignment_id,
            staff_id=assignment.staff_id,
            date=assignment.date,
            shift_type=assignment.shift_type,
            start_time=assignment.start_time,
            end_time=assignment.end_time,
        )


class WeekResponse(BaseModel):
    week_start: date
    revision: int = Field(ge=0)
    days: list[date]
    assignments: list[ShiftAssignmentModel]


class AdvanceRequest(BaseModel):
    staff_id: str = Field(min_length=1, max_length=64)
    date: date
    current: Optional[ShiftAssignmentModel] = None


class AdvanceResponse(BaseModel):
    assignment: Optional[ShiftAssignmentModel] = None


class PublishRequest(BaseModel):
    week_start: date
    revision: int = Field(ge=0)
    assignments: list[ShiftAssignmentModel]


class FailedItem(BaseModel):
    assignment: ShiftAssignmentModel
    error: str


class PublishResponse(BaseModel):
    week_start: date
    revision: Optional[int] = None
    deleted: list[ShiftAssignmentModel]
    upserted: list[ShiftAssignmentModel]
    failed_deletes: list[FailedItem]
    failed_upserts: list[FailedItem]
    stored: list[ShiftAssignmentModel] = Field(default_factory=list)


def _report_response(report: PublishReport) -> PublishResponse:
    return PublishResponse(
        week_start=report.week_start,
        revision=report.revision,
        deleted=[ShiftAssignmentModel.from_domain(item) for item in report.deleted],
        upserted=[ShiftAssignmentModel.from_domain(item) for item in report.upserted],
        failed_deletes=[
            FailedItem(assignment=ShiftAssignmentModel.from_domain(item), error=error)
            for item, error in report.failed_deletes
        ],
        failed_upserts=[
            FailedItem(assignment=ShiftAssignmentModel.from_domain(item), error=error)
            for item, error in report.failed_upserts
        ],
        stored=[ShiftAssignmentModel.from_domain(item) for item in report.stored],
    )


@router.get("/shifts/week", response_model=WeekResponse, status_code=status.HTTP_200_OK)
async def get_week(
    day: date = Query(...),
    service: ShiftRotationService = Depends(get_shift_service),
) -> WeekResponse:
    """Return the stored week containing ``day`` with its revision number."""
    try:
        session = service.open_week(day)
    except ShiftRotationError as exc:
        # stored rows that no longer fit the rotation
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return WeekResponse(
        week_start=session.week_start,
        revision=session.revision,
        days=week_days(session.week_start),
        assignments=[ShiftAssignmentModel.from_domain(item) for item in session.working_set],
    )


@router.post("/shifts/advance", response_model=AdvanceResponse, status_code=status.HTTP_200_OK)
async def advance(payload: AdvanceRequest) -> AdvanceResponse:
    """Apply one rotation step to a single cell without touching storage."""
    try:
        updated = advance_shift(
            payload.current.to_domain() if payload.current is not None else None,
            payload.staff_id,
            payload.date,
        )
    except ShiftRotationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if updated is None:
        return AdvanceResponse(assignment=None)
    return AdvanceResponse(assignment=ShiftAssignmentModel.from_domain(updated))


@router.post("/shifts/publish", response_model=PublishResponse, status_code=status.HTTP_200_OK)
async def publish(
    payload: PublishRequest,
    service: ShiftRotationService = Depends(get_shift_service),
):
    try:
        report = service.publish_working_set(
            week_start=payload.week_start,
            revision=payload.revision,
            working=[item.to_domain() for item in payload.assignments],
        )
        return _report_response(report)
    except ShiftRotationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StaleWeekSnapshotError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except NonAtomicPublishFailure as exc:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "detail": str(exc),
                "report": _report_response(exc.report).model_dump(mode="json"),
            },
        )
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected shift publish failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to publish shift week",
        ) from exc
