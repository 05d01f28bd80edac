"""Export class attendance to an Excel file."""

import dataclasses
import datetime
import io
import pathlib
import re
from typing import Optional

import xlsxwriter

from uniattend.features import aggregation
from uniattend.model import classes_mod, database, students_mod
from uniattend.model.attendance_mod import AttendanceStatus


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
MAX_SHEET_NAME_LENGTH = 31
LEADING_COLUMNS = [("Roll No", 15), ("Student Name", 30), ("Registration No", 20)]
TRAILING_COLUMNS = [("Total Present", 15), ("Percentage", 15)]
DATE_COLUMN_WIDTH = 12
PRESENT_FILL = "#E2F0D9"
ABSENT_FILL = "#FFD9D9"

_invalid_sheet_chars = re.compile(r"[\[\]:*?/\\]")
_whitespace = re.compile(r"\s+")
_unsafe_filename_chars = re.compile(r"[\\/:*?\"<>|]")


def sheet_name(class_name: str) -> str:
    """Worksheet name for a class, shortened to Excel's 31 character limit.

    Characters that Excel does not allow in sheet names are removed.
    """
    name = _invalid_sheet_chars.sub("", f"{class_name} Attendance").strip()
    name = name[:MAX_SHEET_NAME_LENGTH].strip().strip("'")
    return name or "Attendance"


def report_filename(class_name: str) -> str:
    """File name like B.Tech_Computer_Science_Attendance_Report.xlsx.

    Path separators, quotes, and other characters that are not allowed in
    file names are replaced with underscores.
    """
    name = _unsafe_filename_chars.sub("_", _whitespace.sub("_", class_name.strip()))
    return f"{name}_Attendance_Report.xlsx"


def export(
    class_info: classes_mod.Class,
    students: list[students_mod.Student],
    matrix: aggregation.AttendanceMatrix,
) -> bytes:
    """Write an attendance matrix to an in-memory Excel workbook.

    One row per student, one column per date in the matrix, followed by the
    number of days present and the attendance percentage.
    """
    output = io.BytesIO()
    workbook = xlsxwriter.Workbook(output, {"in_memory": True})
    workbook.set_properties(
        {"title": f"{class_info.name} Attendance", "author": class_info.department}
    )
    header_format = workbook.add_format(
        {"bold": True, "align": "center", "valign": "vcenter"}
    )
    cell_format = workbook.add_format({"align": "center", "valign": "vcenter", "border": 1})
    status_formats = {
        AttendanceStatus.PRESENT: workbook.add_format(
            {"align": "center", "valign": "vcenter", "border": 1, "bg_color": PRESENT_FILL}
        ),
        AttendanceStatus.ABSENT: workbook.add_format(
            {"align": "center", "valign": "vcenter", "border": 1, "bg_color": ABSENT_FILL}
        ),
        AttendanceStatus.NOT_RECORDED: cell_format,
    }
    sheet = workbook.add_worksheet(sheet_name(class_info.name))
    _write_header(sheet, matrix, header_format)
    for row_number, student in enumerate(students, start=1):
        _write_student_row(sheet, row_number, student, matrix, cell_format, status_formats)
    workbook.close()
    return output.getvalue()


def _write_header(sheet, matrix: aggregation.AttendanceMatrix, header_format) -> None:
    """Write column headings and set column widths."""
    columns = (
        LEADING_COLUMNS
        + [
            (event_date.strftime("%d/%m/%Y"), DATE_COLUMN_WIDTH)
            for event_date in matrix.dates
        ]
        + TRAILING_COLUMNS
    )
    for col_number, (heading, width) in enumerate(columns):
        sheet.set_column(col_number, col_number, width)
        sheet.write_string(0, col_number, heading, header_format)
    sheet.freeze_panes(1, len(LEADING_COLUMNS))


def _write_student_row(
    sheet,
    row_number: int,
    student: students_mod.Student,
    matrix: aggregation.AttendanceMatrix,
    cell_format,
    status_formats,
) -> None:
    """Write one student's attendance."""
    sheet.write_string(row_number, 0, student.roll_no, cell_format)
    sheet.write_string(row_number, 1, student.name, cell_format)
    sheet.write_string(row_number, 2, student.registration_no or "N/A", cell_format)
    col_number = len(LEADING_COLUMNS)
    for event_date in matrix.dates:
        status = matrix.cell_status(student.student_id, event_date)
        sheet.write_string(row_number, col_number, status.label, status_formats[status])
        col_number += 1
    sheet.write_number(
        row_number,
        col_number,
        matrix.totals_per_student.get(student.student_id, 0),
        cell_format,
    )
    if matrix.dates:
        percent = f"{matrix.percentage_per_student.get(student.student_id, 0)}%"
    else:
        percent = "N/A"
    sheet.write_string(row_number, col_number + 1, percent, cell_format)


@dataclasses.dataclass(frozen=True)
class ExportedReport:
    """An Excel attendance report ready to download or save."""

    filename: str
    content: bytes
    media_type: str = XLSX_MEDIA_TYPE

    @property
    def content_disposition(self) -> str:
        """Value for a Content-Disposition header."""
        quoted = self.filename.replace("\\", "\\\\").replace('"', '\\"')
        return f'attachment; filename="{quoted}"'

    def save(self, folder: pathlib.Path) -> pathlib.Path:
        """Write the report to a folder and return the file path."""
        path = folder / self.filename
        path.write_bytes(self.content)
        return path


class ReportExporter:
    """Build attendance reports for a class from the database."""

    dbase: database.DBase
    engine: aggregation.AttendanceEngine

    def __init__(
        self, dbase: database.DBase, engine: Optional[aggregation.AttendanceEngine] = None
    ) -> None:
        """Read from dbase, building the matrix with engine."""
        self.dbase = dbase
        self.engine = engine if engine is not None else aggregation.AttendanceEngine(dbase)

    def export_report(
        self,
        class_id: int,
        start_date: Optional[datetime.date | str] = None,
        end_date: Optional[datetime.date | str] = None,
    ) -> ExportedReport:
        """Export a class's attendance between two dates (inclusive).

        Raises:
            NotFoundError: If the class does not exist. Raised before any part
                of the workbook is created.
            ValidationError: If start_date is after end_date.
        """
        class_info = classes_mod.Class.get_existing(self.dbase, class_id)
        matrix = self.engine.build_attendance_matrix(class_id, start_date, end_date)
        content = export(class_info, matrix.students, matrix)
        return ExportedReport(report_filename(class_info.name), content)
