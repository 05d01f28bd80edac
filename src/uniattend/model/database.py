"""Connect to the Sqlite database and run queries."""

from collections.abc import Sequence
import datetime
import pathlib
import sqlite3
from typing import Any

from uniattend.model import schema


class DBaseError(Exception):
    """Error occurred when working with database."""


class ValidationError(DBaseError):
    """Missing or malformed input. The caller should fix the request."""


class NotFoundError(DBaseError):
    """A class or student ID does not exist."""


class DuplicateKeyError(DBaseError):
    """A student with the same roll number already exists."""


class ReferentialConflictError(DBaseError):
    """Cannot delete a record because other records still refer to it."""


def dict_factory(cursor: sqlite3.Cursor, row: Sequence) -> dict[str, Any]:
    """Return Sqlite data as a dictionary."""
    fields = [column[0] for column in cursor.description]
    return {key: value for key, value in zip(fields, row)}


def adapt_date_iso(val: datetime.date | str) -> str:
    """Adapt datetime.date to ISO 8601 date."""
    if isinstance(val, datetime.date):
        return val.isoformat()
    return val


def adapt_datetime_iso(val: datetime.datetime | str) -> str:
    """Adapt datetime.datetime to timezone-naive ISO 8601 timestamp.

    Microseconds are always included so that timestamps sort correctly as text.
    """
    if isinstance(val, datetime.datetime):
        return val.replace(tzinfo=None).isoformat(timespec="microseconds")
    return val


# Sqlite's default date and datetime adapters are deprecated as of Python 3.12.
#   Register explicit adapters so dates are always stored as ISO-8601 text.
sqlite3.register_adapter(datetime.date, adapt_date_iso)
sqlite3.register_adapter(datetime.datetime, adapt_datetime_iso)


def now() -> datetime.datetime:
    """Server timestamp used for created_at columns."""
    return datetime.datetime.now()


class DBase:
    """Read and write to database."""

    db_path: pathlib.Path
    """Path to Sqlite database."""

    def __init__(self, db_path: pathlib.Path, create_new: bool = False) -> None:
        """Set database path."""
        self.db_path = db_path
        if create_new:
            if self.db_path.exists():
                raise DBaseError(
                    f"Cannot create new database at {db_path}, file already exists."
                )
            else:
                self.create_tables()
        else:
            if not db_path.exists():
                raise DBaseError(f"Database file at {db_path} does not exist.")

    def get_db_connection(self, as_dict=False) -> sqlite3.Connection:
        """Get connection to the SQLite database. Create DB if it doesn't exist."""
        conn = sqlite3.connect(self.db_path, timeout=10.0)
        if as_dict:
            conn.row_factory = dict_factory
        else:
            conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def create_tables(self):
        """Creates the database tables if they don't already exist."""
        with self.get_db_connection() as conn:
            for table_schema in schema.ALL_SCHEMAS:
                conn.execute(table_schema)
        conn.close()

    def count_rows(self, table_name: str, column: str, value: Any) -> int:
        """Count rows in a table where column equals value."""
        if table_name not in ("classes", "students", "attendance"):
            raise DBaseError(f"Unknown table {table_name}.")
        query = f"SELECT COUNT(*) AS row_count FROM {table_name} WHERE {column} = ?;"
        conn = self.get_db_connection()
        row_count = conn.execute(query, (value,)).fetchone()["row_count"]
        conn.close()
        return row_count

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        """Export database contents.

        Returns:
            Contents of the database as a Python dictionary. Format:
            {<table_name>: [{<col_name>: <col_value>}]}
        """
        queries = {
            "classes": """
                SELECT class_id, name, department, semester, subject, created_at
                  FROM classes
              ORDER BY class_id;
            """,
            "students": """
                SELECT student_id, name, roll_no, class_id, registration_no,
                       email, mobile, created_at
                  FROM students
              ORDER BY student_id;
            """,
            "attendance": """
                SELECT attendance_id, student_id, class_id, event_date, is_present,
                       subject, time_slot, created_at
                  FROM attendance
              ORDER BY attendance_id;
            """,
        }
        conn = self.get_db_connection(as_dict=True)
        db_data = {table: conn.execute(query).fetchall() for table, query in queries.items()}
        conn.close()
        return db_data

    def load_from_dict(self, db_data_dict: dict[str, list[dict[str, Any]]]) -> None:
        """Import data into the Sqlite database in a single transaction."""
        class_query = """
            INSERT INTO classes
                        (class_id, name, department, semester, subject, created_at)
                 VALUES (:class_id, :name, :department, :semester, :subject,
                        :created_at);
        """
        student_query = """
            INSERT INTO students
                        (student_id, name, roll_no, class_id, registration_no,
                        email, mobile, created_at)
                 VALUES (:student_id, :name, :roll_no, :class_id, :registration_no,
                        :email, :mobile, :created_at);
        """
        attendance_query = """
            INSERT INTO attendance
                        (attendance_id, student_id, class_id, event_date, is_present,
                        subject, time_slot, created_at)
                 VALUES (:attendance_id, :student_id, :class_id, :event_date,
                        :is_present, :subject, :time_slot, :created_at);
        """
        optional_columns = {
            "classes": ["subject"],
            "students": ["registration_no", "email", "mobile"],
            "attendance": ["subject", "time_slot"],
        }
        tables = {
            table: [
                {col: None for col in optional_columns[table]} | row
                for row in db_data_dict.get(table, [])
            ]
            for table in optional_columns
        }
        with self.get_db_connection() as conn:
            conn.executemany(class_query, tables["classes"])
            conn.executemany(student_query, tables["students"])
            conn.executemany(attendance_query, tables["attendance"])
        conn.close()
