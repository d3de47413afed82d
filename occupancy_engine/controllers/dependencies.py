"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from occupancy_engine.repository.data_repository import DataRepository
from occupancy_engine.services.allocation_service import BookingAllocationService
from occupancy_engine.services.occupancy_service import OccupancyReportService
from occupancy_engine.services.shift_service import ShiftRotationService
from occupancy_engine.services.timeline_service import TimelineService


def _require_state(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_occupancy_service(request: Request) -> OccupancyReportService:
    return _require_state(request, "occupancy_service", "Occupancy service")


def get_timeline_service(request: Request) -> TimelineService:
    return _require_state(request, "timeline_service", "Timeline service")


def get_allocation_service(request: Request) -> BookingAllocationService:
    return _require_state(request, "allocation_service", "Allocation service")


def get_shift_service(request: Request) -> ShiftRotationService:
    return _require_state(request, "shift_service", "Shift service")


def get_repository(request: Request) -> DataRepository:
    return _require_state(request, "repository", "Repository")
