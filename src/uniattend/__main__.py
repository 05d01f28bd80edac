"""Command line interface for the UniAttend attendance system."""
import argparse
import logging
import pathlib
import sys
from typing import Optional

import rich
import rich.markup
import rich.table

from uniattend import config
from uniattend.features import aggregation, notifications
from uniattend.model import classes_mod, database, excel, students_mod
from uniattend.model.attendance_mod import AttendanceEntry, AttendanceStatus


STATUS_STYLES = {
    AttendanceStatus.PRESENT: "green",
    AttendanceStatus.ABSENT: "red",
    AttendanceStatus.NOT_RECORDED: "dim",
}


def build_parser() -> argparse.ArgumentParser:
    """Define command line arguments."""
    parser = argparse.ArgumentParser(prog="uniattend")
    parser.add_argument(
        "-d", "--db_path",
        help="Path to attendance database",
        type=pathlib.Path,
        default=None
    )
    parser.add_argument(
        "-c", "--config_path",
        help="Path to config file",
        type=pathlib.Path,
        default=None
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress messages."
    )
    parser.set_defaults(func=None)
    subparsers = parser.add_subparsers()

    init_parser = subparsers.add_parser("init", help="Create a new database.")
    init_parser.set_defaults(func=init_db)

    config_parser = subparsers.add_parser(
        "config", help="Write an example config file."
    )
    config_parser.set_defaults(func=write_config)
    config_parser.add_argument(
        "path", type=pathlib.Path, nargs="?",
        default=pathlib.Path(config.CONFIG_FILE_NAME)
    )

    add_class_parser = subparsers.add_parser("add-class", help="Add a class.")
    add_class_parser.set_defaults(func=add_class)
    add_class_parser.add_argument("name")
    add_class_parser.add_argument("department")
    add_class_parser.add_argument("semester", type=int)
    add_class_parser.add_argument("-s", "--subject", default=None)

    classes_parser = subparsers.add_parser("classes", help="List classes.")
    classes_parser.set_defaults(func=list_classes)

    delete_class_parser = subparsers.add_parser(
        "delete-class", help="Delete a class that has no students or attendance."
    )
    delete_class_parser.set_defaults(func=delete_class)
    delete_class_parser.add_argument("class_id", type=int)

    add_student_parser = subparsers.add_parser("add-student", help="Add a student.")
    add_student_parser.set_defaults(func=add_student)
    add_student_parser.add_argument("class_id", type=int)
    add_student_parser.add_argument("roll_no")
    add_student_parser.add_argument("name")
    add_student_parser.add_argument("-r", "--registration_no", default=None)
    add_student_parser.add_argument("-e", "--email", default=None)
    add_student_parser.add_argument("-m", "--mobile", default=None)

    students_parser = subparsers.add_parser("students", help="List students.")
    students_parser.set_defaults(func=list_students)
    students_parser.add_argument("-k", "--class_id", type=int, default=None)

    delete_student_parser = subparsers.add_parser(
        "delete-student", help="Delete a student who has no attendance."
    )
    delete_student_parser.set_defaults(func=delete_student)
    delete_student_parser.add_argument("student_id", type=int)

    mark_parser = subparsers.add_parser(
        "mark",
        help="Record attendance. Students not listed as absent are marked present."
    )
    mark_parser.set_defaults(func=mark_attendance)
    mark_parser.add_argument("class_id", type=int)
    mark_parser.add_argument("date")
    mark_parser.add_argument(
        "-a", "--absent", type=int, nargs="*", default=[],
        help="IDs of absent students."
    )
    mark_parser.add_argument("-s", "--subject", default=None)
    mark_parser.add_argument("-t", "--time_slot", default=None)
    mark_parser.add_argument("-f", "--faculty_email", default=None)

    day_parser = subparsers.add_parser("day", help="Show attendance for one day.")
    day_parser.set_defaults(func=show_day)
    day_parser.add_argument("class_id", type=int)
    day_parser.add_argument("date")

    summary_parser = subparsers.add_parser(
        "summary", help="Attendance totals for each recorded day."
    )
    summary_parser.set_defaults(func=show_summary)
    summary_parser.add_argument("class_id", type=int)
    summary_parser.add_argument("-b", "--start_date", default=None)
    summary_parser.add_argument("-e", "--end_date", default=None)

    stats_parser = subparsers.add_parser("stats", help="Dashboard statistics.")
    stats_parser.set_defaults(func=show_stats)

    export_parser = subparsers.add_parser(
        "export", help="Export attendance to an Excel file."
    )
    export_parser.set_defaults(func=export_report)
    export_parser.add_argument("class_id", type=int)
    export_parser.add_argument("-b", "--start_date", default=None)
    export_parser.add_argument("-e", "--end_date", default=None)
    export_parser.add_argument(
        "-o", "--output_dir", type=pathlib.Path, default=pathlib.Path.cwd()
    )
    return parser


def open_dbase() -> database.DBase:
    """Open the database named in the settings."""
    if config.settings.db_path is None:
        raise database.DBaseError("No database path was given.")
    return database.DBase(config.settings.db_path)


def init_db(args: argparse.Namespace) -> None:
    """Create an empty database."""
    db_path = config.settings.db_path
    if db_path is None:
        raise database.DBaseError("No database path was given.")
    database.DBase(db_path, create_new=True)
    rich.print(f"Created database at {db_path}")


def write_config(args: argparse.Namespace) -> None:
    """Copy the example config file, unless the file already exists."""
    if args.path.exists():
        raise config.ConfigError(
            f"{args.path} already exists.", config.ConfigError.ErrorType.FILE_EXISTS
        )
    config.settings.create_new_config_file(args.path)
    rich.print(f"Wrote {args.path}")


def add_class(args: argparse.Namespace) -> None:
    """Add a class."""
    new_class = classes_mod.Class.create(
        open_dbase(), args.name, args.department, args.semester, args.subject
    )
    rich.print(f"Added class {new_class.class_id}: {new_class.name}")


def list_classes(args: argparse.Namespace) -> None:
    """Print all classes with student counts."""
    table = rich.table.Table(title="Classes")
    for heading in ["ID", "Name", "Department", "Semester", "Students", "Last Updated"]:
        table.add_column(heading)
    for overview in classes_mod.ClassOverview.get_all(open_dbase()):
        last_updated = (
            overview.last_updated.strftime("%b %d, %Y %I:%M %p")
            if overview.last_updated is not None else "-"
        )
        table.add_row(
            str(overview.class_id), overview.name, overview.department,
            str(overview.semester), str(overview.student_count), last_updated,
        )
    rich.print(table)


def delete_class(args: argparse.Namespace) -> None:
    """Delete a class."""
    classes_mod.Class.delete(open_dbase(), args.class_id)
    rich.print(f"Deleted class {args.class_id}")


def add_student(args: argparse.Namespace) -> None:
    """Add a student."""
    student = students_mod.Student.create(
        open_dbase(),
        name=args.name,
        roll_no=args.roll_no,
        class_id=args.class_id,
        registration_no=args.registration_no,
        email=args.email,
        mobile=args.mobile,
    )
    rich.print(f"Added student {student.student_id}: {student.name} ({student.roll_no})")


def list_students(args: argparse.Namespace) -> None:
    """Print students, optionally for one class."""
    dbase = open_dbase()
    if args.class_id is None:
        students = students_mod.Student.get_all(dbase)
    else:
        students = students_mod.Student.get_by_class(dbase, args.class_id)
    table = rich.table.Table(title="Students")
    for heading in ["ID", "Roll No", "Name", "Class", "Registration No", "Email"]:
        table.add_column(heading)
    for student in students:
        table.add_row(
            str(student.student_id), student.roll_no, student.name,
            str(student.class_id), student.registration_no or "N/A",
            student.email or "",
        )
    rich.print(table)


def delete_student(args: argparse.Namespace) -> None:
    """Delete a student."""
    students_mod.Student.delete(open_dbase(), args.student_id)
    rich.print(f"Deleted student {args.student_id}")


def mark_attendance(args: argparse.Namespace) -> None:
    """Save attendance for every student in the class."""
    dbase = open_dbase()
    dispatcher = notifications.NotificationDispatcher(dbase, config.settings)
    engine = aggregation.AttendanceEngine(dbase, dispatcher)
    absent = set(args.absent)
    entries = [
        AttendanceEntry(student.student_id, student.student_id not in absent)
        for student in students_mod.Student.get_by_class(dbase, args.class_id)
    ]
    attendance_ids = engine.save_attendance(
        args.class_id, args.date, entries, args.subject, args.time_slot,
        args.faculty_email,
    )
    rich.print(f"Saved {len(attendance_ids)} attendance records.")
    dispatcher.wait(timeout=config.settings.smtp_timeout * 3)
    summary = engine.get_attendance_summary(args.class_id, args.date)
    rich.print(
        f"{summary.present} present, {summary.absent} absent "
        f"({summary.percentage}%)"
    )


def show_day(args: argparse.Namespace) -> None:
    """Print each student's status on one day."""
    engine = aggregation.AttendanceEngine(open_dbase())
    table = rich.table.Table(title=f"Attendance on {args.date}")
    for heading in ["ID", "Roll No", "Name", "Status"]:
        table.add_column(heading)
    for view in engine.get_attendance_by_date(args.class_id, args.date):
        style = STATUS_STYLES[view.status]
        table.add_row(
            str(view.student.student_id), view.student.roll_no, view.student.name,
            f"[{style}]{view.status.label}[/{style}]",
        )
    rich.print(table)


def show_summary(args: argparse.Namespace) -> None:
    """Print daily totals for a class."""
    engine = aggregation.AttendanceEngine(open_dbase())
    table = rich.table.Table(title=f"Class {args.class_id} Attendance")
    for heading in ["Date", "Present", "Absent", "Total", "Percentage"]:
        table.add_column(heading)
    for summary in engine.get_attendance_report(
        args.class_id, args.start_date, args.end_date
    ):
        table.add_row(
            summary.date.isoformat(), str(summary.present), str(summary.absent),
            str(summary.total), f"{summary.percentage}%",
        )
    rich.print(table)


def show_stats(args: argparse.Namespace) -> None:
    """Print dashboard statistics."""
    stats = aggregation.AttendanceEngine(open_dbase()).get_dashboard_stats()
    rich.print(stats.to_dict())


def export_report(args: argparse.Namespace) -> None:
    """Write an Excel attendance report."""
    dbase = open_dbase()
    report = excel.ReportExporter(dbase).export_report(
        args.class_id, args.start_date, args.end_date
    )
    path = report.save(args.output_dir)
    rich.print(f"Wrote {path}")


def main(argv: Optional[list[str]] = None) -> int:
    """Function to run the app, used for the project.scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.func is None:
        parser.print_help()
        return 2
    try:
        config.settings.update_from_args(args)
        args.func(args)
    except (database.DBaseError, config.ConfigError) as err:
        rich.print(f"[red]{rich.markup.escape(str(err))}[/red]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
