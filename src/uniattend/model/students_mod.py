"""Student table definition and queries.

Roll numbers are unique across the whole institution. The uniqueness check
and the insert run in the same write transaction, and the UNIQUE constraint on
roll_no catches anything that slips past the check.
"""

import dataclasses
import datetime
import sqlite3
from typing import Any, ClassVar, Optional, TYPE_CHECKING

from uniattend.model import classes_mod, database


if TYPE_CHECKING:
    from uniattend.model.database import DBase


STUDENT_COLUMNS = """
    student_id, name, roll_no, class_id, registration_no, email, mobile, created_at
"""


@dataclasses.dataclass
class Student:
    """A university student."""

    student_id: int
    name: str
    roll_no: str
    class_id: int
    registration_no: Optional[str]
    email: Optional[str]
    mobile: Optional[str]
    created_at: datetime.datetime

    updatable_fields: ClassVar[tuple[str, ...]] = (
        "name", "roll_no", "class_id", "registration_no", "email", "mobile"
    )

    def __init__(
        self,
        student_id: int,
        name: str,
        roll_no: str,
        class_id: int,
        registration_no: Optional[str] = None,
        email: Optional[str] = None,
        mobile: Optional[str] = None,
        created_at: Optional[datetime.datetime | str] = None,
    ) -> None:
        """Ensure created_at is converted to datetime.datetime."""
        if isinstance(created_at, str):
            created_at = datetime.datetime.fromisoformat(created_at)
        self.student_id = student_id
        self.name = name
        self.roll_no = roll_no
        self.class_id = class_id
        self.registration_no = registration_no
        self.email = email
        self.mobile = mobile
        self.created_at = created_at if created_at is not None else database.now()

    @staticmethod
    def create(
        dbase: "DBase",
        name: str,
        roll_no: str,
        class_id: int,
        registration_no: Optional[str] = None,
        email: Optional[str] = None,
        mobile: Optional[str] = None,
    ) -> "Student":
        """Add a new student to the database.

        Raises:
            ValidationError: If name or roll number is blank.
            NotFoundError: If the class does not exist.
            DuplicateKeyError: If another student has the same roll number.
        """
        student = Student(
            student_id=0,
            name=classes_mod.validate_text(name, "Student name"),
            roll_no=classes_mod.validate_text(roll_no, "Roll number"),
            class_id=class_id,
            registration_no=classes_mod.validate_optional_text(
                registration_no, "Registration number"
            ),
            email=classes_mod.validate_optional_text(email, "Email"),
            mobile=classes_mod.validate_optional_text(mobile, "Mobile"),
        )
        query = """
                INSERT INTO students
                            (name, roll_no, class_id, registration_no, email, mobile,
                            created_at)
                     VALUES (:name, :roll_no, :class_id, :registration_no, :email,
                            :mobile, :created_at);
        """
        conn = dbase.get_db_connection()
        try:
            with conn:
                conn.execute("BEGIN IMMEDIATE;")
                student._check_references(conn)
                cursor = conn.execute(query, student.to_dict())
                student.student_id = cursor.lastrowid
        except sqlite3.IntegrityError as err:
            raise database.DuplicateKeyError(
                f"A student with roll number {student.roll_no} already exists."
            ) from err
        finally:
            conn.close()
        return student

    def _check_references(self, conn: sqlite3.Connection) -> None:
        """Verify the class exists and no other student has this roll number."""
        if conn.execute(
            "SELECT 1 FROM classes WHERE class_id = ?;", (self.class_id,)
        ).fetchone() is None:
            raise database.NotFoundError(f"Class {self.class_id} does not exist.")
        duplicate = conn.execute(
            "SELECT student_id FROM students WHERE roll_no = ? AND student_id != ?;",
            (self.roll_no, self.student_id),
        ).fetchone()
        if duplicate is not None:
            raise database.DuplicateKeyError(
                f"A student with roll number {self.roll_no} already exists."
            )

    @staticmethod
    def get_by_id(dbase: "DBase", student_id: int) -> "Student | None":
        """Retrieve a Student object by student_id."""
        query = f"""
                SELECT {STUDENT_COLUMNS}
                  FROM students
                 WHERE student_id = ?;
        """
        conn = dbase.get_db_connection(as_dict=True)
        result = conn.execute(query, (student_id,)).fetchone()
        conn.close()
        if result is None:
            return None
        return Student(**result)

    @staticmethod
    def get_existing(dbase: "DBase", student_id: int) -> "Student":
        """Retrieve a Student object or raise NotFoundError."""
        student = Student.get_by_id(dbase, student_id)
        if student is None:
            raise database.NotFoundError(f"Student {student_id} does not exist.")
        return student

    @staticmethod
    def get_by_roll_no(dbase: "DBase", roll_no: str) -> "Student | None":
        """Retrieve a Student object by roll number."""
        query = f"""
                SELECT {STUDENT_COLUMNS}
                  FROM students
                 WHERE roll_no = ?;
        """
        conn = dbase.get_db_connection(as_dict=True)
        result = conn.execute(query, (roll_no,)).fetchone()
        conn.close()
        if result is None:
            return None
        return Student(**result)

    @staticmethod
    def get_all(dbase: "DBase") -> list["Student"]:
        """Retrieve a list of all Student objects from the database."""
        query = f"""
                SELECT {STUDENT_COLUMNS}
                  FROM students
              ORDER BY student_id;
        """
        conn = dbase.get_db_connection(as_dict=True)
        students = [Student(**student) for student in conn.execute(query)]
        conn.close()
        return students

    @staticmethod
    def get_by_class(dbase: "DBase", class_id: int) -> list["Student"]:
        """Retrieve the students in a class in the order they were added.

        Returns an empty list if the class has no students or does not exist.
        """
        query = f"""
                SELECT {STUDENT_COLUMNS}
                  FROM students
                 WHERE class_id = ?
              ORDER BY student_id;
        """
        conn = dbase.get_db_connection(as_dict=True)
        students = [Student(**student) for student in conn.execute(query, (class_id,))]
        conn.close()
        return students

    @staticmethod
    def update(dbase: "DBase", student_id: int, /, **fields: Any) -> "Student":
        """Change one or more fields of an existing student.

        Setting class_id moves the student to another class. Attendance
        already recorded keeps the class it was recorded for.

        Raises:
            NotFoundError: If the student or the new class does not exist.
            DuplicateKeyError: If the new roll number belongs to another student.
            ValidationError: If a field name is unknown or a value is invalid.
        """
        unknown = set(fields) - set(Student.updatable_fields)
        if unknown:
            raise database.ValidationError(
                f"Cannot update student fields: {', '.join(sorted(unknown))}."
            )
        student = Student.get_existing(dbase, student_id)
        if "name" in fields:
            student.name = classes_mod.validate_text(fields["name"], "Student name")
        if "roll_no" in fields:
            student.roll_no = classes_mod.validate_text(fields["roll_no"], "Roll number")
        if "class_id" in fields:
            student.class_id = fields["class_id"]
        for optional_field in ("registration_no", "email", "mobile"):
            if optional_field in fields:
                setattr(
                    student,
                    optional_field,
                    classes_mod.validate_optional_text(
                        fields[optional_field], optional_field
                    ),
                )
        query = """
                UPDATE students
                   SET name = :name,
                       roll_no = :roll_no,
                       class_id = :class_id,
                       registration_no = :registration_no,
                       email = :email,
                       mobile = :mobile
                 WHERE student_id = :student_id;
        """
        conn = dbase.get_db_connection()
        try:
            with conn:
                conn.execute("BEGIN IMMEDIATE;")
                student._check_references(conn)
                conn.execute(query, student.to_dict())
        except sqlite3.IntegrityError as err:
            raise database.DuplicateKeyError(
                f"A student with roll number {student.roll_no} already exists."
            ) from err
        finally:
            conn.close()
        return student

    @staticmethod
    def delete(dbase: "DBase", student_id: int) -> None:
        """Delete a student that has no attendance records.

        Raises:
            NotFoundError: If the student does not exist.
            ReferentialConflictError: If attendance records refer to the student.
        """
        conn = dbase.get_db_connection()
        try:
            with conn:
                conn.execute("BEGIN IMMEDIATE;")
                if conn.execute(
                    "SELECT 1 FROM students WHERE student_id = ?;", (student_id,)
                ).fetchone() is None:
                    raise database.NotFoundError(
                        f"Student {student_id} does not exist."
                    )
                attendance_count = conn.execute(
                    "SELECT COUNT(*) FROM attendance WHERE student_id = ?;",
                    (student_id,),
                ).fetchone()[0]
                if attendance_count:
                    raise database.ReferentialConflictError(
                        f"Cannot delete student {student_id}: it has "
                        f"{attendance_count} attendance records."
                    )
                conn.execute("DELETE FROM students WHERE student_id = ?;", (student_id,))
        except sqlite3.IntegrityError as err:
            raise database.ReferentialConflictError(
                f"Cannot delete student {student_id}: {err}"
            ) from err
        finally:
            conn.close()

    def to_dict(self) -> dict:
        """Convert the Student dataclass to a dictionary."""
        return {
            "student_id": self.student_id,
            "name": self.name,
            "roll_no": self.roll_no,
            "class_id": self.class_id,
            "registration_no": self.registration_no,
            "email": self.email,
            "mobile": self.mobile,
            "created_at": self.created_at.isoformat(timespec="microseconds"),
        }
