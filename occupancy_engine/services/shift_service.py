"""Weekly staff shift rotation and the publish protocol against storage.

Each (staff member, day) cell cycles through four states on every toggle:

    EMPTY -> MORNING@08:00 -> MORNING@09:00 -> EVENING@16:00 -> EMPTY

EMPTY is the absence of a stored assignment. Publishing a week compares the
snapshot last read from storage with the edited working set: snapshot rows
missing from the working set are deleted, then every working row is
upserted. Items are written one by one and failures are collected rather
than aborting the batch, so a failed publish can leave storage partially
updated; the caller re-fetches the week afterwards. A per-week revision
number is checked before any write so a publish based on a stale snapshot is
refused instead of clobbering another session's edits.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, time, timedelta
from enum import Enum
from typing import Iterable, Optional

from occupancy_engine.domain.models import ShiftAssignment, ShiftType, WeekDiff
from occupancy_engine.repository.data_repository import DataRepository
from occupancy_engine.utils.config import Settings, get_settings
from occupancy_engine.utils.logger import get_logger


logger = get_logger(__name__)


class ShiftRotationError(ValueError):
    """Raised when a shift cell or working set is invalid."""


class StaleWeekSnapshotError(Exception):
    """Raised when the stored week changed after the snapshot was taken."""

    def __init__(self, week_start: date, expected: int, actual: int) -> None:
        super().__init__(
            f"week {week_start.isoformat()} is at revision {actual}, "
            f"snapshot was taken at revision {expected}; re-fetch before publishing"
        )
        self.week_start = week_start
        self.expected = expected
        self.actual = actual


class ShiftState(Enum):
    EMPTY = "empty"
    MORNING_0800 = "morning_0800"
    MORNING_0900 = "morning_0900"
    EVENING_1600 = "evening_1600"

    def advance(self) -> "ShiftState":
        return _NEXT_STATE[self]


_NEXT_STATE = {
    ShiftState.EMPTY: ShiftState.MORNING_0800,
    ShiftState.MORNING_0800: ShiftState.MORNING_0900,
    ShiftState.MORNING_0900: ShiftState.EVENING_1600,
    ShiftState.EVENING_1600: ShiftState.EMPTY,
}

ROTATION: dict[ShiftState, tuple[ShiftType, time, time]] = {
    ShiftState.MORNING_0800: (ShiftType.MORNING, time(8, 0), time(16, 0)),
    ShiftState.MORNING_0900: (ShiftType.MORNING, time(9, 0), time(17, 0)),
    ShiftState.EVENING_1600: (ShiftType.EVENING, time(16, 0), time(23, 59)),
}


def state_of(assignment: Optional[ShiftAssignment]) -> ShiftState:
    if assignment is None:
        return ShiftState.EMPTY
    for state, (shift_type, start_time, _) in ROTATION.items():
        if assignment.shift_type is shift_type and assignment.start_time == start_time:
            return state
    raise ShiftRotationError(
        f"{assignment.shift_type.value}@{assignment.start_time.strftime('%H:%M')} "
        "is not part of the rotation"
    )


def advance_shift(
    current: Optional[ShiftAssignment],
    staff_id: str,
    day: date,
) -> Optional[ShiftAssignment]:
    """Apply one toggle to a cell; returns None when the cell becomes empty.

    An existing assignment keeps its id across transitions so publishing
    updates the stored row instead of re-inserting it.
    """
    if current is not None and current.cell != (staff_id, day):
        raise ShiftRotationError("assignment does not belong to the toggled cell")

    next_state = state_of(current).advance()
    if next_state is ShiftState.EMPTY:
        return None

    shift_type, start_time, end_time = ROTATION[next_state]
    if current is None:
        return ShiftAssignment(
            staff_id=staff_id,
            date=day,
            shift_type=shift_type,
            start_time=start_time,
            end_time=end_time,
        )
    return replace(current, shift_type=shift_type, start_time=start_time, end_time=end_time)


def diff_week(
    snapshot: Iterable[ShiftAssignment],
    working: Iterable[ShiftAssignment],
) -> WeekDiff:
    working_list = list(working)
    working_ids = {
        assignment.assignment_id
        for assignment in working_list
        if assignment.assignment_id is not None
    }
    to_delete = [
        assignment
        for assignment in snapshot
        if assignment.assignment_id is not None
        and assignment.assignment_id not in working_ids
    ]
    return WeekDiff(to_delete=to_delete, to_upsert=working_list)


def week_start_for(day: date, week_start_weekday: int = 0) -> date:
    return day - timedelta(days=(day.weekday() - week_start_weekday) % 7)


def week_days(week_start: date) -> list[date]:
    return [week_start + timedelta(days=offset) for offset in range(7)]


@dataclass
class PublishReport:
    week_start: date
    deleted: list[ShiftAssignment] = field(default_factory=list)
    upserted: list[ShiftAssignment] = field(default_factory=list)
    failed_deletes: list[tuple[ShiftAssignment, str]] = field(default_factory=list)
    failed_upserts: list[tuple[ShiftAssignment, str]] = field(default_factory=list)
    revision: Optional[int] = None
    # week as re-read from storage after the writes
    stored: list[ShiftAssignment] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed_deletes and not self.failed_upserts


class NonAtomicPublishFailure(Exception):
    """Raised after a best-effort publish in which some items failed.

    The report lists what was written and what was not, so the caller can
    retry the remainder after re-fetching the week.
    """

    def __init__(self, report: PublishReport) -> None:
        super().__init__(
            f"publish of week {report.week_start.isoformat()} partially failed: "
            f"{len(report.failed_deletes)} deletes and "
            f"{len(report.failed_upserts)} upserts not applied"
        )
        self.report = report

    @property
    def remaining_delete(self) -> list[ShiftAssignment]:
        return [assignment for assignment, _ in self.report.failed_deletes]

    @property
    def remaining_upsert(self) -> list[ShiftAssignment]:
        return [assignment for assignment, _ in self.report.failed_upserts]


class ShiftRotationSession:
    """Snapshot and locally edited working set for one visible week."""

    def __init__(
        self,
        week_start: date,
        snapshot: Iterable[ShiftAssignment],
        revision: int = 0,
    ) -> None:
        self.week_start = week_start
        self.revision = revision
        self._days = set(week_days(week_start))
        self._snapshot = list(snapshot)
        self._working: dict[tuple[str, date], ShiftAssignment] = {}
        for assignment in self._snapshot:
            self._put(assignment)

    def _put(self, assignment: ShiftAssignment) -> None:
        if assignment.date not in self._days:
            raise ShiftRotationError(
                f"{assignment.date.isoformat()} is outside week {self.week_start.isoformat()}"
            )
        if assignment.cell in self._working:
            raise ShiftRotationError(
                f"duplicate assignment for {assignment.staff_id} on {assignment.date.isoformat()}"
            )
        state_of(assignment)
        self._working[assignment.cell] = assignment

    @property
    def snapshot(self) -> list[ShiftAssignment]:
        return list(self._snapshot)

    @property
    def working_set(self) -> list[ShiftAssignment]:
        return sorted(self._working.values(), key=lambda item: (item.date, item.staff_id))

    def assignment_at(self, staff_id: str, day: date) -> Optional[ShiftAssignment]:
        return self._working.get((staff_id, day))

    def toggle(self, staff_id: str, day: date) -> Optional[ShiftAssignment]:
        if day not in self._days:
            raise ShiftRotationError(
                f"{day.isoformat()} is outside week {self.week_start.isoformat()}"
            )
        updated = advance_shift(self._working.get((staff_id, day)), staff_id, day)
        if updated is None:
            self._working.pop((staff_id, day), None)
        else:
            self._working[(staff_id, day)] = updated
        return updated

    def replace_working_set(self, working: Iterable[ShiftAssignment]) -> None:
        previous = self._working
        self._working = {}
        try:
            for assignment in working:
                self._put(assignment)
        except ShiftRotationError:
            self._working = previous
            raise

    def diff(self) -> WeekDiff:
        return diff_week(self._snapshot, self.working_set)

    def publish(self, repository: DataRepository) -> "PublishReport":
        return publish_week(repository, self)


def publish_week(repository: DataRepository, session: ShiftRotationSession) -> PublishReport:
    """Write a session's diff item by item: deletes first, then upserts."""
    current_revision = repository.get_week_revision(session.week_start)
    if current_revision != session.revision:
        raise StaleWeekSnapshotError(session.week_start, session.revision, current_revision)

    week_diff = session.diff()
    report = PublishReport(week_start=session.week_start)

    for assignment in week_diff.to_delete:
        try:
            repository.delete_shift(assignment.assignment_id)
            report.deleted.append(assignment)
        except Exception as exc:
            logger.warning(
                "Shift delete failed | id=%s | error=%s",
                assignment.assignment_id,
                exc,
            )
            report.failed_deletes.append((assignment, str(exc)))

    for assignment in week_diff.to_upsert:
        try:
            if assignment.assignment_id is None:
                new_id = repository.insert_shift(assignment)
                report.upserted.append(replace(assignment, assignment_id=new_id))
            else:
                repository.update_shift(assignment)
                report.upserted.append(assignment)
        except Exception as exc:
            logger.warning(
                "Shift upsert failed | staff_id=%s | date=%s | error=%s",
                assignment.staff_id,
                assignment.date.isoformat(),
                exc,
            )
            report.failed_upserts.append((assignment, str(exc)))

    if report.deleted or report.upserted:
        report.revision = repository.bump_week_revision(session.week_start)
    else:
        report.revision = current_revision

    logger.info(
        "Shift week published | week_start=%s | deleted=%s | upserted=%s | failed=%s",
        session.week_start.isoformat(),
        len(report.deleted),
        len(report.upserted),
        len(report.failed_deletes) + len(report.failed_upserts),
    )
    if not report.succeeded:
        raise NonAtomicPublishFailure(report)
    return report


class ShiftRotationService:
    """Loads weeks from storage and publishes edited working sets back."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def week_start_for(self, day: date) -> date:
        return week_start_for(day, self._settings.shift_week_start_weekday)

    def open_week(self, any_day: date) -> ShiftRotationSession:
        week_start = self.week_start_for(any_day)
        return ShiftRotationSession(
            week_start=week_start,
            snapshot=self._repository.list_shifts_for_week(week_start),
            revision=self._repository.get_week_revision(week_start),
        )

    def publish_working_set(
        self,
        week_start: date,
        revision: int,
        working: Iterable[ShiftAssignment],
    ) -> PublishReport:
        """Publish a client-held working set against the stored week.

        The stored rows are the snapshot; the revision check guarantees they
        are the rows the client originally fetched.
        """
        if self.week_start_for(week_start) != week_start:
            raise ShiftRotationError(f"{week_start.isoformat()} is not a week start")
        session = ShiftRotationSession(
            week_start=week_start,
            snapshot=self._repository.list_shifts_for_week(week_start),
            revision=revision,
        )
        working_list = list(working)
        stored_ids = {item.assignment_id for item in session.snapshot}
        foreign_ids = sorted(
            item.assignment_id
            for item in working_list
            if item.assignment_id is not None and item.assignment_id not in stored_ids
        )
        if foreign_ids:
            raise ShiftRotationError(f"assignment ids not in this week: {foreign_ids}")
        session.replace_working_set(working_list)
        return self.publish_session(session)

    def publish_session(self, session: ShiftRotationSession) -> PublishReport:
        """Publish a session, then re-read the week so callers drop their local copy.

        The fresh rows are attached to the report on success and to the
        report carried by ``NonAtomicPublishFailure`` on partial failure.
        """
        try:
            report = session.publish(self._repository)
        except NonAtomicPublishFailure as exc:
            exc.report.stored = self._repository.list_shifts_for_week(session.week_start)
            raise
        report.stored = self._repository.list_shifts_for_week(session.week_start)
        return report
