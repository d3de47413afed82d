#!/usr/bin/env python3
"""Check that the local environment can run the occupancy engine."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from occupancy_engine.domain.models import ChargeBreakdown, PaymentStatus
from occupancy_engine.repository.data_repository import DataRepository
from occupancy_engine.services.allocation_service import BookingAllocationService
from occupancy_engine.services.occupancy_service import OccupancyReportService
from occupancy_engine.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="occupancy-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = ["fastapi", "uvicorn", "pydantic", "numpy", "pandas", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_specs:
        try:
            importlib.import_module(module_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "occupancy_validation.db",
        )
        repository = DataRepository(settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo data seeding
        try:
            repository.seed_synthetic_data()
            rooms = repository.count_resources()
            reservations = repository.count_bookings()
            if rooms != len(settings.synthetic_room_numbers):
                raise RuntimeError(f"expected {len(settings.synthetic_room_numbers)} rooms, got {rooms}")
            if reservations != settings.synthetic_booking_count:
                raise RuntimeError(
                    f"expected {settings.synthetic_booking_count} reservations, got {reservations}"
                )
            ok, line = _print_result(
                "Demo data seeding",
                True,
                f": {rooms} rooms, {reservations} reservations",
            )
        except Exception as exc:
            ok, line = _print_result("Demo data seeding", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Occupancy for the current month
        try:
            today = date.today()
            metrics = OccupancyReportService(repository=repository, settings=settings).period_metrics(
                year=today.year,
                month=today.month,
            )
            if metrics.occupancy_rate < 0.0:
                raise RuntimeError("occupancy rate is negative")
            ok, line = _print_result(
                "Occupancy report",
                True,
                f": rate={metrics.occupancy_rate:.4f} nights={metrics.occupied_nights}",
            )
        except Exception as exc:
            ok, line = _print_result("Occupancy report", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 6: Multi-room charge allocation
        try:
            room_ids = [room.resource_id for room in repository.list_resources()[:3]]
            check_in = date.today() + timedelta(days=365)
            created = BookingAllocationService(repository=repository, settings=settings).create_bookings(
                check_in=check_in,
                check_out=check_in + timedelta(days=2),
                charge=ChargeBreakdown(rate=1_000_001),
                resource_selection=room_ids,
                payment_status=PaymentStatus.DEPOSIT_PAID,
                deposit_paid=300_000,
                order_id="RES-VALIDATE",
            )
            allocated_total = sum(charge.share_of_total for _, charge in created)
            if allocated_total != 1_000_001:
                raise RuntimeError(f"allocated {allocated_total}, expected 1000001")
            ok, line = _print_result(
                "Charge allocation",
                True,
                f": {[charge.share_of_total for _, charge in created]}",
            )
        except Exception as exc:
            ok, line = _print_result("Charge allocation", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Occupancy Engine Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
