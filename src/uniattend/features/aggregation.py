"""Summaries and reports computed from attendance records.

Every function in this module reads the canonical_attendance view, so a
student who was marked more than once for the same class and day is counted
once, using the most recent record.
"""

from collections.abc import Iterable, Mapping, Sequence
import dataclasses
import datetime
import functools
import logging
from typing import Any, Optional, Protocol

import polars as pl

from uniattend.features import validators
from uniattend.model import attendance_mod, classes_mod, database, students_mod
from uniattend.model.attendance_mod import AttendanceEntry, AttendanceStatus


logger = logging.getLogger(__name__)


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage with halves rounded up, 0 if whole is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


class Dispatcher(Protocol):
    """Anything that can send notifications after attendance is saved."""

    def dispatch_in_background(
        self,
        class_id: int,
        event_date: datetime.date,
        entries: Sequence[AttendanceEntry],
        faculty_email: Optional[str] = None,
    ) -> Any: ...


@dataclasses.dataclass(frozen=True)
class StudentAttendanceView:
    """A student and their attendance status for one day."""

    student: students_mod.Student
    status: AttendanceStatus

    @property
    def is_present(self) -> Optional[bool]:
        """True or False, or None if attendance was not recorded."""
        if self.status == AttendanceStatus.NOT_RECORDED:
            return None
        return self.status == AttendanceStatus.PRESENT


@dataclasses.dataclass(frozen=True)
class AttendanceSummary:
    """Attendance totals for one class on one day."""

    date: datetime.date
    present: int
    absent: int
    total: int
    percentage: int

    @classmethod
    def from_statuses(
        cls, event_date: datetime.date, statuses: Iterable[AttendanceStatus]
    ) -> "AttendanceSummary":
        """Count present and absent statuses. NOT_RECORDED is not counted."""
        present = absent = 0
        for status in statuses:
            if status == AttendanceStatus.PRESENT:
                present += 1
            elif status == AttendanceStatus.ABSENT:
                absent += 1
        total = present + absent
        return cls(event_date, present, absent, total, percentage(present, total))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return dataclasses.asdict(self) | {"date": self.date.isoformat()}


@dataclasses.dataclass(frozen=True)
class DashboardStats:
    """Institution-wide numbers for the dashboard."""

    total_classes: int
    total_students: int
    today_attendance: int
    """Percent of canonical records dated today that are present."""
    reports_generated: int
    """Number of days on which attendance was recorded."""

    def to_dict(self) -> dict[str, int]:
        """Convert to a dictionary."""
        return dataclasses.asdict(self)


@dataclasses.dataclass
class AttendanceMatrix:
    """Student by date grid of attendance for one class.

    dates only contains days on which at least one attendance record exists
    for the class, in ascending order.
    cells holds every canonical record in the date range, including students
    who have since moved to another class.
    """

    class_id: int
    students: list[students_mod.Student]
    dates: list[datetime.date]
    cells: dict[tuple[int, datetime.date], AttendanceStatus]

    @classmethod
    def build(
        cls,
        class_id: int,
        students: list[students_mod.Student],
        events: Sequence[attendance_mod.AttendanceEvent],
    ) -> "AttendanceMatrix":
        """Pivot canonical attendance events into a matrix."""
        records = pl.DataFrame(
            {
                "student_id": [event.student_id for event in events],
                "event_date": [event.event_date for event in events],
                "is_present": [event.is_present for event in events],
            },
            schema={
                "student_id": pl.Int64,
                "event_date": pl.Date,
                "is_present": pl.Boolean,
            },
        )
        dates = records.get_column("event_date").unique().sort().to_list()
        cells = {
            (student_id, event_date): AttendanceStatus.from_present(is_present)
            for student_id, event_date, is_present in records.iter_rows()
        }
        return cls(class_id, students, dates, cells)

    def cell_status(self, student_id: int, event_date: datetime.date) -> AttendanceStatus:
        """Status of one student on one day."""
        return self.cells.get((student_id, event_date), AttendanceStatus.NOT_RECORDED)

    def row(self, student_id: int) -> list[AttendanceStatus]:
        """Statuses of one student, one per date."""
        return [self.cell_status(student_id, event_date) for event_date in self.dates]

    @functools.cached_property
    def totals_per_student(self) -> dict[int, int]:
        """Number of days each student was present."""
        return {
            student.student_id: self.row(student.student_id).count(
                AttendanceStatus.PRESENT
            )
            for student in self.students
        }

    @functools.cached_property
    def percentage_per_student(self) -> dict[int, int]:
        """Percent of dates on which each student was present."""
        return {
            student_id: percentage(total, len(self.dates))
            for student_id, total in self.totals_per_student.items()
        }

    def daily_summaries(self) -> list[AttendanceSummary]:
        """Totals for each date, counting every canonical record for the class.

        Students who have since moved to another class still count on the
        days they were recorded, so each summary matches
        AttendanceEngine.get_attendance_summary for the same date.
        """
        statuses_by_date: dict[datetime.date, list[AttendanceStatus]] = {
            event_date: [] for event_date in self.dates
        }
        for (_, event_date), status in self.cells.items():
            statuses_by_date[event_date].append(status)
        return [
            AttendanceSummary.from_statuses(event_date, statuses)
            for event_date, statuses in statuses_by_date.items()
        ]

    def to_dataframe(self) -> pl.DataFrame:
        """Wide table with one row per student and one column per ISO date."""
        date_columns = [event_date.isoformat() for event_date in self.dates]
        data: dict[str, list[Any]] = {
            "roll_no": [student.roll_no for student in self.students],
            "name": [student.name for student in self.students],
        }
        for column, event_date in zip(date_columns, self.dates):
            data[column] = [
                self.cell_status(student.student_id, event_date).label
                for student in self.students
            ]
        data["total_present"] = [
            self.totals_per_student[student.student_id] for student in self.students
        ]
        data["percentage"] = [
            self.percentage_per_student[student.student_id] for student in self.students
        ]
        schema = (
            {"roll_no": pl.String, "name": pl.String}
            | {column: pl.String for column in date_columns}
            | {"total_present": pl.Int64, "percentage": pl.Int64}
        )
        return pl.DataFrame(data, schema=schema)


class AttendanceEngine:
    """Record attendance and compute summaries from the database."""

    dbase: database.DBase
    dispatcher: Optional[Dispatcher]

    def __init__(
        self, dbase: database.DBase, dispatcher: Optional[Dispatcher] = None
    ) -> None:
        """Use dbase for all reads and writes.

        If a dispatcher is given, it is called after each successful save.
        """
        self.dbase = dbase
        self.dispatcher = dispatcher

    def get_attendance_by_date(
        self, class_id: int, event_date: datetime.date | str
    ) -> list[StudentAttendanceView]:
        """Status of every student in the class on one day.

        Students without a record for the day are NOT_RECORDED, not absent.
        """
        event_date = validators.parse_date(event_date)
        events = attendance_mod.AttendanceEvent.get_canonical(
            self.dbase, class_id, event_date, event_date
        )
        by_student = {event.student_id: event.status for event in events}
        return [
            StudentAttendanceView(
                student,
                by_student.get(student.student_id, AttendanceStatus.NOT_RECORDED),
            )
            for student in students_mod.Student.get_by_class(self.dbase, class_id)
        ]

    @staticmethod
    def _to_entries(
        entries: Iterable[AttendanceEntry | Mapping[str, Any]],
    ) -> list[AttendanceEntry]:
        """Validate an attendance submission."""
        checked: list[AttendanceEntry] = []
        seen: set[int] = set()
        for entry in entries:
            if isinstance(entry, Mapping):
                try:
                    student_id, is_present = entry["student_id"], entry["is_present"]
                except KeyError as err:
                    raise database.ValidationError(
                        f"Attendance entry is missing {err.args[0]}."
                    ) from err
            else:
                student_id, is_present = entry.student_id, entry.is_present
            if isinstance(student_id, bool) or not isinstance(student_id, int):
                raise database.ValidationError(f"Invalid student ID {student_id!r}.")
            if not isinstance(is_present, bool):
                raise database.ValidationError(
                    f"is_present for student {student_id} must be true or false."
                )
            if student_id in seen:
                raise database.ValidationError(
                    f"Student {student_id} appears more than once."
                )
            seen.add(student_id)
            checked.append(AttendanceEntry(student_id, is_present))
        if not checked:
            raise database.ValidationError("No attendance entries were submitted.")
        return checked

    def save_attendance(
        self,
        class_id: int,
        event_date: datetime.date | str,
        entries: Iterable[AttendanceEntry | Mapping[str, Any]],
        subject: Optional[str] = None,
        time_slot: Optional[str] = None,
        faculty_email: Optional[str] = None,
    ) -> list[int]:
        """Store attendance for a class session, then send notifications.

        A student who already has attendance for the class and day gets a
        second record, which replaces the first in all summaries.

        Returns:
            IDs of the new attendance records.

        Raises:
            NotFoundError: If the class does not exist.
            ValidationError: If the submission is invalid. Nothing is stored.
        """
        event_date = validators.parse_date(event_date)
        checked = self._to_entries(entries)
        attendance_ids = attendance_mod.AttendanceEvent.record_session(
            self.dbase,
            class_id,
            event_date,
            checked,
            subject=classes_mod.validate_optional_text(subject, "Subject"),
            time_slot=classes_mod.validate_optional_text(time_slot, "Time slot"),
        )
        logger.info(
            "Saved %d attendance records for class %s on %s.",
            len(attendance_ids), class_id, event_date.isoformat(),
        )
        if self.dispatcher is not None:
            try:
                self.dispatcher.dispatch_in_background(
                    class_id, event_date, checked, faculty_email
                )
            except RuntimeError:
                logger.exception("Could not start attendance notifications.")
        return attendance_ids

    def get_attendance_summary(
        self, class_id: int, event_date: datetime.date | str
    ) -> AttendanceSummary:
        """Present, absent, and total counts for a class on one day."""
        event_date = validators.parse_date(event_date)
        events = attendance_mod.AttendanceEvent.get_canonical(
            self.dbase, class_id, event_date, event_date
        )
        return AttendanceSummary.from_statuses(
            event_date, (event.status for event in events)
        )

    def get_dashboard_stats(
        self, today: Optional[datetime.date] = None
    ) -> DashboardStats:
        """Counts of classes and students, today's attendance, and active days."""
        if today is None:
            today = datetime.date.today()
        todays_events = attendance_mod.AttendanceEvent.get_canonical(
            self.dbase, start_date=today, end_date=today
        )
        present = sum(1 for event in todays_events if event.is_present)
        return DashboardStats(
            total_classes=len(classes_mod.Class.get_all(self.dbase)),
            total_students=len(students_mod.Student.get_all(self.dbase)),
            today_attendance=percentage(present, len(todays_events)),
            reports_generated=attendance_mod.AttendanceEvent.count_recorded_dates(
                self.dbase
            ),
        )

    def build_attendance_matrix(
        self,
        class_id: int,
        start_date: Optional[datetime.date | str] = None,
        end_date: Optional[datetime.date | str] = None,
    ) -> AttendanceMatrix:
        """Attendance grid for the students in a class over a date range.

        Both bounds are inclusive and either may be omitted.

        Raises:
            ValidationError: If start_date is after end_date.
        """
        start, end = validators.parse_date_range(start_date, end_date)
        events = attendance_mod.AttendanceEvent.get_canonical(
            self.dbase, class_id, start, end
        )
        students = students_mod.Student.get_by_class(self.dbase, class_id)
        return AttendanceMatrix.build(class_id, students, events)

    def get_attendance_report(
        self,
        class_id: int,
        start_date: Optional[datetime.date | str] = None,
        end_date: Optional[datetime.date | str] = None,
    ) -> list[AttendanceSummary]:
        """One summary per recorded day in the date range."""
        return self.build_attendance_matrix(
            class_id, start_date, end_date
        ).daily_summaries()
