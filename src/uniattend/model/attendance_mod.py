"""Attendance table and associated queries.

An attendance event records whether a student was present in a class on a
calendar day. Events are append-only: correcting a mistake means recording
the student again, and the newest record becomes the canonical one (see the
canonical_attendance view in uniattend.model.schema).
"""

import dataclasses
import datetime
import enum
from collections.abc import Sequence
from typing import Any, Optional, TYPE_CHECKING

from uniattend.model import database


if TYPE_CHECKING:
    from uniattend.model.database import DBase


class AttendanceStatus(enum.StrEnum):
    """Attendance status of a student for one class on one day."""

    PRESENT = "present"
    ABSENT = "absent"
    NOT_RECORDED = "not_recorded"

    @classmethod
    def from_present(cls, is_present: Optional[bool]) -> "AttendanceStatus":
        """Convert an is_present value, where None means no record."""
        if is_present is None:
            return cls.NOT_RECORDED
        return cls.PRESENT if is_present else cls.ABSENT

    @property
    def label(self) -> str:
        """Text shown in reports: 'Present', 'Absent', or 'N/A'."""
        return {
            AttendanceStatus.PRESENT: "Present",
            AttendanceStatus.ABSENT: "Absent",
            AttendanceStatus.NOT_RECORDED: "N/A",
        }[self]


@dataclasses.dataclass(frozen=True)
class AttendanceEntry:
    """One line of an attendance submission."""

    student_id: int
    is_present: bool


@dataclasses.dataclass(frozen=True)
class AttendanceEvent:
    """A stored attendance record. Never modified after it is written."""

    attendance_id: int
    student_id: int
    class_id: int
    event_date: datetime.date
    is_present: bool
    subject: Optional[str]
    time_slot: Optional[str]
    created_at: datetime.datetime

    def __post_init__(self) -> None:
        """Convert Sqlite text and integer values."""
        if isinstance(self.event_date, str):
            object.__setattr__(
                self, "event_date", datetime.date.fromisoformat(self.event_date)
            )
        if isinstance(self.created_at, str):
            object.__setattr__(
                self, "created_at", datetime.datetime.fromisoformat(self.created_at)
            )
        object.__setattr__(self, "is_present", bool(self.is_present))

    @property
    def status(self) -> AttendanceStatus:
        """Present or absent."""
        return AttendanceStatus.from_present(self.is_present)

    @property
    def iso_date(self) -> str:
        """Event date as an iso-formatted string."""
        return self.event_date.isoformat()

    @property
    def day_of_week(self) -> int:
        """Day of week as an integer with Monday = 1."""
        return self.event_date.weekday() + 1

    @staticmethod
    def record_session(
        dbase: "DBase",
        class_id: int,
        event_date: datetime.date,
        entries: Sequence[AttendanceEntry],
        subject: Optional[str] = None,
        time_slot: Optional[str] = None,
    ) -> list[int]:
        """Insert one attendance event per entry in a single transaction.

        Either every entry is stored or none is.

        Returns:
            IDs of the new attendance records, in the order of the entries.

        Raises:
            NotFoundError: If the class does not exist.
            ValidationError: If a student does not exist or is not in the class.
        """
        query = """
                INSERT INTO attendance
                            (student_id, class_id, event_date, is_present, subject,
                            time_slot, created_at)
                     VALUES (:student_id, :class_id, :event_date, :is_present,
                            :subject, :time_slot, :created_at);
        """
        created_at = database.now()
        conn = dbase.get_db_connection()
        try:
            with conn:
                conn.execute("BEGIN IMMEDIATE;")
                if conn.execute(
                    "SELECT 1 FROM classes WHERE class_id = ?;", (class_id,)
                ).fetchone() is None:
                    raise database.NotFoundError(f"Class {class_id} does not exist.")
                roster = {
                    row["student_id"]
                    for row in conn.execute(
                        "SELECT student_id FROM students WHERE class_id = ?;",
                        (class_id,),
                    )
                }
                outsiders = [
                    entry.student_id
                    for entry in entries
                    if entry.student_id not in roster
                ]
                if outsiders:
                    raise database.ValidationError(
                        f"Students {outsiders} are not enrolled in class {class_id}."
                    )
                attendance_ids = []
                for entry in entries:
                    cursor = conn.execute(
                        query,
                        {
                            "student_id": entry.student_id,
                            "class_id": class_id,
                            "event_date": event_date,
                            "is_present": int(entry.is_present),
                            "subject": subject,
                            "time_slot": time_slot,
                            "created_at": created_at,
                        },
                    )
                    attendance_ids.append(cursor.lastrowid)
        finally:
            conn.close()
        return attendance_ids

    @staticmethod
    def _select(
        dbase: "DBase",
        source: str,
        class_id: Optional[int] = None,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
    ) -> list["AttendanceEvent"]:
        """Retrieve attendance events from a table or view with optional filters."""
        conditions = []
        params: dict[str, Any] = {}
        if class_id is not None:
            conditions.append("class_id = :class_id")
            params["class_id"] = class_id
        if start_date is not None:
            conditions.append("event_date >= :start_date")
            params["start_date"] = start_date
        if end_date is not None:
            conditions.append("event_date <= :end_date")
            params["end_date"] = end_date
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"""
                SELECT attendance_id, student_id, class_id, event_date, is_present,
                       subject, time_slot, created_at
                  FROM {source}
                  {where}
              ORDER BY event_date, attendance_id;
        """
        conn = dbase.get_db_connection(as_dict=True)
        events = [AttendanceEvent(**row) for row in conn.execute(query, params)]
        conn.close()
        return events

    @staticmethod
    def get_all(
        dbase: "DBase",
        class_id: Optional[int] = None,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
    ) -> list["AttendanceEvent"]:
        """Retrieve every stored attendance event, including superseded ones."""
        return AttendanceEvent._select(dbase, "attendance", class_id, start_date, end_date)

    @staticmethod
    def get_canonical(
        dbase: "DBase",
        class_id: Optional[int] = None,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
    ) -> list["AttendanceEvent"]:
        """Retrieve one attendance event per student, class, and day.

        Date bounds are inclusive. Pass the same date as start_date and
        end_date to get a single day.
        """
        return AttendanceEvent._select(
            dbase, "canonical_attendance", class_id, start_date, end_date
        )

    @staticmethod
    def count_recorded_dates(dbase: "DBase") -> int:
        """Count the distinct days on which any attendance was recorded."""
        query = """
                SELECT COUNT(DISTINCT event_date) AS date_count
                  FROM canonical_attendance;
        """
        conn = dbase.get_db_connection()
        date_count = conn.execute(query).fetchone()["date_count"]
        conn.close()
        return date_count

    def to_dict(self) -> dict:
        """Convert the AttendanceEvent to a JSON-serializable dictionary."""
        return {
            "attendance_id": self.attendance_id,
            "student_id": self.student_id,
            "class_id": self.class_id,
            "event_date": self.iso_date,
            "is_present": self.is_present,
            "subject": self.subject,
            "time_slot": self.time_slot,
            "created_at": self.created_at.isoformat(timespec="microseconds"),
        }
