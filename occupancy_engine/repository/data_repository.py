"""Repository layer responsible for all database access."""

from __future__ import annotations

import random
import sqlite3
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Optional, Sequence
from uuid import uuid4

from occupancy_engine.domain.constraints import validate_transition
from occupancy_engine.domain.models import (
    Booking,
    LifecycleState,
    PaymentStatus,
    Resource,
    ShiftAssignment,
    ShiftType,
    StayInterval,
)
from occupancy_engine.utils.config import Settings, get_settings
from occupancy_engine.utils.logger import get_logger


logger = get_logger(__name__)


class BookingNotFoundError(LookupError):
    """Raised when a reservation id does not exist in persisted state."""


class DataRepository:
    """Encapsulates SQLite access so the engines stay storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_number TEXT NOT NULL UNIQUE,
                        room_type TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'Available'
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Reservations (
                        id TEXT PRIMARY KEY,
                        room_id INTEGER NOT NULL,
                        order_id TEXT NOT NULL UNIQUE,
                        guest_name TEXT NOT NULL DEFAULT '',
                        check_in_date TEXT NOT NULL,
                        check_out_date TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'Confirmed',
                        payment_status TEXT,
                        total_amount INTEGER NOT NULL CHECK (total_amount >= 0),
                        deposit_amount INTEGER NOT NULL DEFAULT 0 CHECK (deposit_amount >= 0),
                        is_maintenance INTEGER NOT NULL DEFAULT 0 CHECK (is_maintenance IN (0,1)),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (check_out_date > check_in_date),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Shifts (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        staff_id TEXT NOT NULL,
                        shift_date TEXT NOT NULL,
                        shift_type TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'Scheduled',
                        UNIQUE (staff_id, shift_date)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ShiftWeekRevisions (
                        week_start TEXT PRIMARY KEY,
                        revision INTEGER NOT NULL DEFAULT 0,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_reservations_room_dates
                    ON Reservations(room_id, check_in_date, check_out_date);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_shifts_date
                    ON Shifts(shift_date);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_synthetic_data(self) -> None:
        """Seed deterministic demo rooms and reservations only when tables are empty."""
        rng = random.Random(self._settings.synthetic_random_seed)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                room_count = int(cursor.fetchone()["count"])
                if room_count > 0:
                    logger.info("Synthetic data already present; skipping seed")
                    return

                rooms = [
                    (number, "Deluxe" if number.startswith("2") else "Standard")
                    for number in self._settings.synthetic_room_numbers
                ]
                cursor.executemany(
                    "INSERT INTO Rooms (room_number, room_type) VALUES (?, ?);",
                    rooms,
                )

                cursor.execute("SELECT id FROM Rooms ORDER BY id ASC;")
                room_ids = [int(row["id"]) for row in cursor.fetchall()]
                horizon = self._settings.synthetic_horizon_days
                start_date = datetime.now().date() - timedelta(days=horizon // 3)

                reservation_rows = []
                for index in range(self._settings.synthetic_booking_count):
                    check_in = start_date + timedelta(days=rng.randrange(horizon))
                    stay = rng.randint(1, self._settings.synthetic_max_stay_nights)
                    payment_status = rng.choice(list(PaymentStatus))
                    total_amount = stay * self._settings.synthetic_nightly_rate
                    if payment_status is PaymentStatus.FULLY_PAID:
                        deposit_amount = total_amount
                    elif payment_status is PaymentStatus.DEPOSIT_PAID:
                        deposit_amount = total_amount // 2
                    else:
                        deposit_amount = 0
                    reservation_rows.append(
                        (
                            str(uuid4()),
                            rng.choice(room_ids),
                            f"RES-SEED-{index + 1:04d}",
                            f"Guest {index + 1}",
                            check_in.isoformat(),
                            (check_in + timedelta(days=stay)).isoformat(),
                            LifecycleState.CONFIRMED.value,
                            payment_status.value,
                            total_amount,
                            deposit_amount,
                        )
                    )

                cursor.executemany(
                    """
                    INSERT INTO Reservations (
                        id, room_id, order_id, guest_name, check_in_date,
                        check_out_date, status, payment_status, total_amount,
                        deposit_amount
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    reservation_rows,
                )
                conn.commit()
            logger.info(
                "Synthetic seed completed | rooms=%s | reservations=%s",
                len(rooms),
                len(reservation_rows),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Synthetic data seeding failed: {exc}") from exc

    # --- Rooms ---

    def create_resource(self, room_number: str, room_type: str = "Standard") -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO Rooms (room_number, room_type) VALUES (?, ?);",
                (room_number, room_type),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def list_resources(self) -> list[Resource]:
        """Return rooms in room-number order, the order the room map shows."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, room_number FROM Rooms ORDER BY room_number ASC, id ASC;"
            )
            return [
                Resource(resource_id=int(row["id"]), label=str(row["room_number"]))
                for row in cursor.fetchall()
            ]

    def count_resources(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
            return int(cursor.fetchone()["count"])

    # --- Reservations ---

    @staticmethod
    def _row_to_booking(row: sqlite3.Row) -> Booking:
        return Booking(
            booking_id=str(row["id"]),
            resource_id=int(row["room_id"]),
            interval=StayInterval(
                start_date=date.fromisoformat(str(row["check_in_date"])),
                end_date=date.fromisoformat(str(row["check_out_date"])),
            ),
            lifecycle_state=LifecycleState(str(row["status"])),
            total_amount=int(row["total_amount"]),
            payment_status=(
                PaymentStatus(str(row["payment_status"]))
                if row["payment_status"] is not None
                else None
            ),
            guest_name=str(row["guest_name"]),
            order_id=str(row["order_id"]),
            is_maintenance=bool(row["is_maintenance"]),
        )

    _BOOKING_COLUMNS = """
        id, room_id, order_id, guest_name, check_in_date, check_out_date,
        status, payment_status, total_amount, is_maintenance
    """

    def list_bookings(self, include_cancelled: bool = True) -> list[Booking]:
        """Return reservations in creation order; cancelled rows are kept for audit."""
        where = "" if include_cancelled else "WHERE status != 'Cancelled'"
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {self._BOOKING_COLUMNS}
                FROM Reservations
                {where}
                ORDER BY rowid ASC;
                """
            )
            return [self._row_to_booking(row) for row in cursor.fetchall()]

    def list_bookings_between(self, start: date, end: date) -> list[Booking]:
        """Return reservations whose stay overlaps ``[start, end)``."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {self._BOOKING_COLUMNS}
                FROM Reservations
                WHERE check_in_date < ?
                  AND check_out_date > ?
                ORDER BY rowid ASC;
                """,
                (end.isoformat(), start.isoformat()),
            )
            return [self._row_to_booking(row) for row in cursor.fetchall()]

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {self._BOOKING_COLUMNS} FROM Reservations WHERE id = ?;",
                (booking_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return self._row_to_booking(row)

    def save_bookings_atomic(
        self,
        bookings: Sequence[Booking],
        deposits: Sequence[int],
    ) -> None:
        """Insert one reservation per room in a single transaction.

        Either every row is written or none is; the sqlite3 connection context
        manager rolls back on any error before re-raising it.
        """
        if len(bookings) != len(deposits):
            raise ValueError("bookings and deposits must have the same length")
        if not bookings:
            return
        rows = [
            (
                booking.booking_id,
                booking.resource_id,
                booking.order_id or booking.booking_id,
                booking.guest_name,
                booking.interval.start_date.isoformat(),
                booking.interval.end_date.isoformat(),
                booking.lifecycle_state.value,
                booking.payment_status.value if booking.payment_status else None,
                booking.total_amount,
                deposit,
                int(booking.is_maintenance),
            )
            for booking, deposit in zip(bookings, deposits)
        ]
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO Reservations (
                    id, room_id, order_id, guest_name, check_in_date,
                    check_out_date, status, payment_status, total_amount,
                    deposit_amount, is_maintenance
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                rows,
            )
        logger.info("Persisted %s reservations in one transaction", len(rows))

    def get_deposit_amount(self, booking_id: str) -> Optional[int]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT deposit_amount FROM Reservations WHERE id = ?;",
                (booking_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return int(row["deposit_amount"])

    def update_booking_state(self, booking_id: str, target: LifecycleState) -> Booking:
        """Move a reservation along its lifecycle; cancelled rows are never deleted."""
        current = self.get_booking(booking_id)
        if current is None:
            raise BookingNotFoundError(f"reservation {booking_id} not found")
        validate_transition(current.lifecycle_state, target)
        with self._connect() as conn:
            conn.execute(
                "UPDATE Reservations SET status = ? WHERE id = ?;",
                (target.value, booking_id),
            )
            conn.commit()
        logger.info(
            "Reservation state changed | id=%s | from=%s | to=%s",
            booking_id,
            current.lifecycle_state.value,
            target.value,
        )
        updated = self.get_booking(booking_id)
        if updated is None:
            raise BookingNotFoundError(f"reservation {booking_id} disappeared during update")
        return updated

    def count_bookings(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Reservations;")
            return int(cursor.fetchone()["count"])

    # --- Shifts ---

    @staticmethod
    def _row_to_shift(row: sqlite3.Row) -> ShiftAssignment:
        return ShiftAssignment(
            staff_id=str(row["staff_id"]),
            date=date.fromisoformat(str(row["shift_date"])),
            shift_type=ShiftType(str(row["shift_type"])),
            start_time=time.fromisoformat(str(row["start_time"])),
            end_time=time.fromisoformat(str(row["end_time"])),
            assignment_id=int(row["id"]),
        )

    def list_shifts_for_week(self, week_start: date) -> list[ShiftAssignment]:
        week_end = week_start + timedelta(days=7)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, staff_id, shift_date, shift_type, start_time, end_time
                FROM Shifts
                WHERE shift_date >= ? AND shift_date < ?
                ORDER BY shift_date ASC, staff_id ASC;
                """,
                (week_start.isoformat(), week_end.isoformat()),
            )
            return [self._row_to_shift(row) for row in cursor.fetchall()]

    def insert_shift(self, assignment: ShiftAssignment) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Shifts (staff_id, shift_date, shift_type, start_time, end_time)
                VALUES (?, ?, ?, ?, ?);
                """,
                (
                    assignment.staff_id,
                    assignment.date.isoformat(),
                    assignment.shift_type.value,
                    assignment.start_time.strftime("%H:%M"),
                    assignment.end_time.strftime("%H:%M"),
                ),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def update_shift(self, assignment: ShiftAssignment) -> None:
        if assignment.assignment_id is None:
            raise ValueError("update_shift requires an assignment_id")
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE Shifts
                SET staff_id = ?, shift_date = ?, shift_type = ?, start_time = ?, end_time = ?
                WHERE id = ?;
                """,
                (
                    assignment.staff_id,
                    assignment.date.isoformat(),
                    assignment.shift_type.value,
                    assignment.start_time.strftime("%H:%M"),
                    assignment.end_time.strftime("%H:%M"),
                    assignment.assignment_id,
                ),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise LookupError(f"shift {assignment.assignment_id} not found")

    def delete_shift(self, assignment_id: int) -> None:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM Shifts WHERE id = ?;", (assignment_id,))
            conn.commit()
            if cursor.rowcount == 0:
                raise LookupError(f"shift {assignment_id} not found")

    def get_week_revision(self, week_start: date) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT revision FROM ShiftWeekRevisions WHERE week_start = ?;",
                (week_start.isoformat(),),
            )
            row = cursor.fetchone()
            if row is None:
                return 0
            return int(row["revision"])

    def bump_week_revision(self, week_start: date) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO ShiftWeekRevisions (week_start, revision)
                VALUES (?, 1)
                ON CONFLICT(week_start) DO UPDATE SET
                    revision = revision + 1,
                    updated_at = CURRENT_TIMESTAMP;
                """,
                (week_start.isoformat(),),
            )
            conn.commit()
        return self.get_week_revision(week_start)

    def count_shifts(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Shifts;")
            return int(cursor.fetchone()["count"])

