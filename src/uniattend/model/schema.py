"""Database table definitions.

## Classes
Class names, departments, semesters, and optional subjects.

## Students
Student names, roll numbers, and the class each student belongs to. Roll
numbers are unique across the whole institution, not per class.

## Attendance
One row each time a student is marked present or absent for a class on a
calendar day. Rows are never updated or deleted. Submitting attendance again
for the same student, class, and day adds another row.

## Canonical Attendance
A view with exactly one attendance row per (student_id, class_id, event_date).
The row with the latest created_at wins, and ties go to the highest
attendance_id. All summaries and reports read from this view.

Dates are stored as ISO 8601 text: YYYY-MM-DD for event_date and
YYYY-MM-DDTHH:MM:SS.ffffff for created_at, so text comparisons sort correctly.
"""


CLASS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS classes (
       class_id INTEGER PRIMARY KEY AUTOINCREMENT,
           name TEXT NOT NULL CHECK (length(trim(name)) > 0),
     department TEXT NOT NULL CHECK (length(trim(department)) > 0),
       semester INTEGER NOT NULL CHECK (semester > 0),
        subject TEXT,
     created_at TEXT NOT NULL
);
"""

STUDENT_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS students (
         student_id INTEGER PRIMARY KEY AUTOINCREMENT,
               name TEXT NOT NULL,
            roll_no TEXT UNIQUE NOT NULL,
           class_id INTEGER NOT NULL,
    registration_no TEXT,
              email TEXT,
             mobile TEXT,
         created_at TEXT NOT NULL,
      FOREIGN KEY (class_id) REFERENCES classes (class_id) ON DELETE RESTRICT
);
"""

ATTENDANCE_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS attendance (
    attendance_id INTEGER PRIMARY KEY AUTOINCREMENT,
       student_id INTEGER NOT NULL,
         class_id INTEGER NOT NULL,
       event_date TEXT NOT NULL,
       is_present INTEGER NOT NULL CHECK (is_present IN (0, 1)),
          subject TEXT,
        time_slot TEXT,
       created_at TEXT NOT NULL,
      FOREIGN KEY (student_id) REFERENCES students (student_id) ON DELETE RESTRICT,
      FOREIGN KEY (class_id) REFERENCES classes (class_id) ON DELETE RESTRICT
);
"""

ATTENDANCE_INDEX_SCHEMA = """
CREATE INDEX IF NOT EXISTS attendance_class_date_idx
    ON attendance (class_id, event_date);
"""

CANONICAL_ATTENDANCE_VIEW_SCHEMA = """
CREATE VIEW IF NOT EXISTS canonical_attendance AS
    SELECT attendance_id, student_id, class_id, event_date, is_present,
           subject, time_slot, created_at
      FROM (
            SELECT attendance_id, student_id, class_id, event_date, is_present,
                   subject, time_slot, created_at,
                   ROW_NUMBER() OVER (
                       PARTITION BY student_id, class_id, event_date
                           ORDER BY created_at DESC, attendance_id DESC
                   ) AS row_num
              FROM attendance
           )
     WHERE row_num = 1;
"""

ALL_SCHEMAS = [
    CLASS_TABLE_SCHEMA,
    STUDENT_TABLE_SCHEMA,
    ATTENDANCE_TABLE_SCHEMA,
    ATTENDANCE_INDEX_SCHEMA,
    CANONICAL_ATTENDANCE_VIEW_SCHEMA,
]
