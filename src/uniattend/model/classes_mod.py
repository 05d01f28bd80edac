"""Classes table and associated queries.

A class is a group of students that meets for one semester of a program, for
example "B.Tech Computer Science (4th Sem)". Faculty take attendance for a
class on a given day.
"""

import dataclasses
import datetime
import sqlite3
from typing import Any, ClassVar, Optional, TYPE_CHECKING

from uniattend.model import database


if TYPE_CHECKING:
    from uniattend.model.database import DBase


def validate_text(value: Any, field_name: str) -> str:
    """Raise ValidationError unless value is a non-blank string."""
    if not isinstance(value, str) or not value.strip():
        raise database.ValidationError(f"{field_name} must not be empty.")
    return value.strip()


def validate_optional_text(value: Any, field_name: str) -> Optional[str]:
    """Convert blank strings to None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise database.ValidationError(f"{field_name} must be text.")
    return value.strip() or None


def validate_semester(value: Any) -> int:
    """Raise ValidationError unless value is a positive integer."""
    # bool is a subclass of int, but True is not a semester.
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise database.ValidationError("Semester must be a positive integer.")
    return value


@dataclasses.dataclass
class Class:
    """A class of students."""

    class_id: int
    name: str
    department: str
    semester: int
    subject: Optional[str]
    created_at: datetime.datetime

    updatable_fields: ClassVar[tuple[str, ...]] = (
        "name", "department", "semester", "subject"
    )

    def __init__(
        self,
        class_id: int,
        name: str,
        department: str,
        semester: int,
        subject: Optional[str] = None,
        created_at: Optional[datetime.datetime | str] = None,
    ) -> None:
        """Ensure created_at is converted to datetime.datetime."""
        if isinstance(created_at, str):
            created_at = datetime.datetime.fromisoformat(created_at)
        self.class_id = class_id
        self.name = name
        self.department = department
        self.semester = semester
        self.subject = subject
        self.created_at = created_at if created_at is not None else database.now()

    @staticmethod
    def create(
        dbase: "DBase",
        name: str,
        department: str,
        semester: int,
        subject: Optional[str] = None,
    ) -> "Class":
        """Add a new class to the database.

        Raises:
            ValidationError: If name or department is blank or semester is not
                a positive integer.
        """
        new_class = Class(
            class_id=0,
            name=validate_text(name, "Class name"),
            department=validate_text(department, "Department"),
            semester=validate_semester(semester),
            subject=validate_optional_text(subject, "Subject"),
        )
        query = """
                INSERT INTO classes
                            (name, department, semester, subject, created_at)
                     VALUES (:name, :department, :semester, :subject, :created_at);
        """
        with dbase.get_db_connection() as conn:
            cursor = conn.execute(query, new_class.to_dict())
            new_class.class_id = cursor.lastrowid
        conn.close()
        return new_class

    @staticmethod
    def get_by_id(dbase: "DBase", class_id: int) -> "Class | None":
        """Retrieve a Class object by class_id."""
        query = """
                SELECT class_id, name, department, semester, subject, created_at
                  FROM classes
                 WHERE class_id = ?;
        """
        conn = dbase.get_db_connection(as_dict=True)
        result = conn.execute(query, (class_id,)).fetchone()
        conn.close()
        if result is None:
            return None
        return Class(**result)

    @staticmethod
    def get_existing(dbase: "DBase", class_id: int) -> "Class":
        """Retrieve a Class object or raise NotFoundError."""
        class_info = Class.get_by_id(dbase, class_id)
        if class_info is None:
            raise database.NotFoundError(f"Class {class_id} does not exist.")
        return class_info

    @staticmethod
    def get_all(dbase: "DBase") -> list["Class"]:
        """Retrieve a list of Class objects from the database."""
        query = """
                SELECT class_id, name, department, semester, subject, created_at
                  FROM classes
              ORDER BY class_id;
        """
        conn = dbase.get_db_connection(as_dict=True)
        classes = [Class(**row) for row in conn.execute(query)]
        conn.close()
        return classes

    @staticmethod
    def update(dbase: "DBase", class_id: int, /, **fields: Any) -> "Class":
        """Change one or more fields of an existing class.

        Raises:
            NotFoundError: If the class does not exist.
            ValidationError: If a field name is unknown or a value is invalid.
        """
        unknown = set(fields) - set(Class.updatable_fields)
        if unknown:
            raise database.ValidationError(
                f"Cannot update class fields: {', '.join(sorted(unknown))}."
            )
        class_info = Class.get_existing(dbase, class_id)
        if "name" in fields:
            class_info.name = validate_text(fields["name"], "Class name")
        if "department" in fields:
            class_info.department = validate_text(fields["department"], "Department")
        if "semester" in fields:
            class_info.semester = validate_semester(fields["semester"])
        if "subject" in fields:
            class_info.subject = validate_optional_text(fields["subject"], "Subject")
        query = """
                UPDATE classes
                   SET name = :name,
                       department = :department,
                       semester = :semester,
                       subject = :subject
                 WHERE class_id = :class_id;
        """
        with dbase.get_db_connection() as conn:
            conn.execute(query, class_info.to_dict())
        conn.close()
        return class_info

    @staticmethod
    def delete(dbase: "DBase", class_id: int) -> None:
        """Delete a class that has no students and no attendance records.

        The dependent row counts are checked inside the same write transaction
        as the delete.

        Raises:
            NotFoundError: If the class does not exist.
            ReferentialConflictError: If students or attendance records still
                refer to the class.
        """
        conn = dbase.get_db_connection()
        try:
            with conn:
                conn.execute("BEGIN IMMEDIATE;")
                if conn.execute(
                    "SELECT 1 FROM classes WHERE class_id = ?;", (class_id,)
                ).fetchone() is None:
                    raise database.NotFoundError(f"Class {class_id} does not exist.")
                student_count = conn.execute(
                    "SELECT COUNT(*) FROM students WHERE class_id = ?;", (class_id,)
                ).fetchone()[0]
                attendance_count = conn.execute(
                    "SELECT COUNT(*) FROM attendance WHERE class_id = ?;", (class_id,)
                ).fetchone()[0]
                if student_count or attendance_count:
                    raise database.ReferentialConflictError(
                        f"Cannot delete class {class_id}: it has {student_count} "
                        f"students and {attendance_count} attendance records."
                    )
                conn.execute("DELETE FROM classes WHERE class_id = ?;", (class_id,))
        except sqlite3.IntegrityError as err:
            raise database.ReferentialConflictError(
                f"Cannot delete class {class_id}: {err}"
            ) from err
        finally:
            conn.close()

    def to_dict(self) -> dict:
        """Convert the Class dataclass to a dictionary."""
        return {
            "class_id": self.class_id,
            "name": self.name,
            "department": self.department,
            "semester": self.semester,
            "subject": self.subject,
            "created_at": self.created_at.isoformat(timespec="microseconds"),
        }


@dataclasses.dataclass
class ClassOverview(Class):
    """Class with its number of students and latest attendance activity."""

    student_count: int
    last_updated: Optional[datetime.datetime]
    """When attendance was last recorded for the class, or None."""

    def __init__(
        self,
        student_count: int,
        last_updated: Optional[datetime.datetime | str] = None,
        **class_fields: Any,
    ) -> None:
        """Convert last_updated if needed."""
        if isinstance(last_updated, str):
            last_updated = datetime.datetime.fromisoformat(last_updated)
        self.student_count = student_count
        self.last_updated = last_updated
        super().__init__(**class_fields)

    @staticmethod
    def get_all(dbase: "DBase") -> list["ClassOverview"]:  # type: ignore[override]
        """Retrieve all classes with student counts."""
        query = """
                WITH student_counts AS (
                    SELECT class_id, COUNT(*) AS student_count
                      FROM students
                  GROUP BY class_id
                ),
                last_attendance AS (
                    SELECT class_id, MAX(created_at) AS last_updated
                      FROM attendance
                  GROUP BY class_id
                )
                SELECT c.class_id, c.name, c.department, c.semester, c.subject,
                       c.created_at,
                       COALESCE(s.student_count, 0) AS student_count,
                       a.last_updated
                  FROM classes AS c
             LEFT JOIN student_counts AS s
                    ON s.class_id = c.class_id
             LEFT JOIN last_attendance AS a
                    ON a.class_id = c.class_id
              ORDER BY c.class_id;
        """
        conn = dbase.get_db_connection(as_dict=True)
        overviews = [ClassOverview(**row) for row in conn.execute(query)]
        conn.close()
        return overviews
