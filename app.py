"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and engines, registers routers, and runs startup
initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from occupancy_engine.controllers.booking_controller import router as booking_router
from occupancy_engine.controllers.shift_controller import router as shift_router
from occupancy_engine.domain.constraints import validate_settings
from occupancy_engine.repository.data_repository import DataRepository
from occupancy_engine.services.allocation_service import BookingAllocationService
from occupancy_engine.services.occupancy_service import OccupancyReportService
from occupancy_engine.services.shift_service import ShiftRotationService
from occupancy_engine.services.timeline_service import TimelineService
from occupancy_engine.utils.config import Settings, get_settings
from occupancy_engine.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every engine receives the same repository through app.state, so the
    whole dependency graph is visible from this function.
    """
    settings = settings or get_settings()
    validate_settings(settings)

    repository = DataRepository(settings)

    occupancy_service = OccupancyReportService(repository=repository, settings=settings)
    timeline_service = TimelineService(repository=repository, settings=settings)
    allocation_service = BookingAllocationService(repository=repository, settings=settings)
    shift_service = ShiftRotationService(repository=repository, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(booking_router)
    app.include_router(shift_router)

    app.state.repository = repository
    app.state.occupancy_service = occupancy_service
    app.state.timeline_service = timeline_service
    app.state.allocation_service = allocation_service
    app.state.shift_service = shift_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema must exist before demo rooms and reservations are seeded.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema | path=%s", repository.database_path)
    repository.initialize_database()

    logger.info("Startup: seeding demo rooms and reservations (skipped if Rooms not empty)")
    repository.seed_synthetic_data()

    logger.info(
        "Startup complete | rooms=%s | reservations=%s",
        repository.count_resources(),
        repository.count_bookings(),
    )


# Module-level app object for uvicorn
app = create_app()
