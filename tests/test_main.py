"""Test the command line interface."""

import pathlib

import pytest

from uniattend import __main__ as cli
from uniattend import config
from uniattend.model import classes_mod, database, students_mod


def run(dbase: database.DBase, *args: str) -> int:
    """Run the command line app against a test database."""
    return cli.main(["-d", str(dbase.db_path), *args])


def test_init(settings: config.Settings, empty_output_folder: pathlib.Path) -> None:
    """Create a new database, but not twice."""
    # Arrange
    db_path = empty_output_folder / "cli.db"
    # Act
    first = cli.main(["-d", str(db_path), "init"])
    second = cli.main(["-d", str(db_path), "init"])
    # Assert
    assert first == 0
    assert second == 1
    assert classes_mod.Class.get_all(database.DBase(db_path)) == []


def test_missing_database(
    settings: config.Settings,
    empty_output_folder: pathlib.Path,
    capsys: pytest.CaptureFixture,
) -> None:
    """Commands other than init need an existing database."""
    # Act
    exit_code = cli.main(["-d", str(empty_output_folder / "missing.db"), "classes"])
    # Assert
    assert exit_code == 1
    assert "missing.db" in capsys.readouterr().out


def test_no_command(settings: config.Settings) -> None:
    """Print help when no command is given."""
    # Act, Assert
    assert cli.main([]) == 2


def test_add_class_and_student(
    settings: config.Settings, full_dbase: database.DBase
) -> None:
    """Add a class and a student from the command line."""
    # Act
    class_exit = run(full_dbase, "add-class", "B.Sc Physics", "Physics", "2")
    student_exit = run(
        full_dbase, "add-student", "4", "PHY-01", "Ivan Petrov", "-e", "ivan@example.edu"
    )
    # Assert
    assert class_exit == student_exit == 0
    student = students_mod.Student.get_by_roll_no(full_dbase, "PHY-01")
    assert student is not None
    assert student.class_id == 4
    assert student.email == "ivan@example.edu"


def test_duplicate_student(
    settings: config.Settings, full_dbase: database.DBase, capsys: pytest.CaptureFixture
) -> None:
    """Data errors are printed and return exit code 1."""
    # Act
    exit_code = run(full_dbase, "add-student", "3", "CS001", "Copy Cat")
    # Assert
    assert exit_code == 1
    assert "CS001 already exists" in capsys.readouterr().out


def test_mark_attendance(
    settings: config.Settings, full_dbase: database.DBase, capsys: pytest.CaptureFixture
) -> None:
    """Students not listed as absent are marked present."""
    # Act
    exit_code = run(full_dbase, "mark", "2", "2024-02-01", "-a", "6")
    # Assert
    assert exit_code == 0
    output = capsys.readouterr().out
    assert "Saved 3 attendance records." in output
    assert "2 present, 1 absent (67%)" in output


def test_list_commands(
    settings: config.Settings, full_dbase: database.DBase, capsys: pytest.CaptureFixture
) -> None:
    """Listing commands print tables."""
    # Act
    exit_codes = [
        run(full_dbase, "classes"),
        run(full_dbase, "students", "-k", "2"),
        run(full_dbase, "day", "1", "2024-01-12"),
        run(full_dbase, "summary", "1", "-b", "2024-01-11"),
        run(full_dbase, "stats"),
    ]
    # Assert
    assert exit_codes == [0] * 5
    output = capsys.readouterr().out
    assert "Finance" in output
    assert "CS101-03" in output
    assert "N/A" in output
    assert "2024-01-12" in output
    assert "reports_generated" in output


def test_export(
    settings: config.Settings, full_dbase: database.DBase, empty_output_folder: pathlib.Path
) -> None:
    """Write an Excel report to the output folder."""
    # Act
    exit_code = run(full_dbase, "export", "2", "-o", str(empty_output_folder))
    # Assert
    assert exit_code == 0
    assert (empty_output_folder / "CS101_Attendance_Report.xlsx").exists()


def test_delete_class_in_use(
    settings: config.Settings, full_dbase: database.DBase, capsys: pytest.CaptureFixture
) -> None:
    """A class with students is not deleted."""
    # Act
    exit_code = run(full_dbase, "delete-class", "1")
    # Assert
    assert exit_code == 1
    assert "Cannot delete class 1" in capsys.readouterr().out
    assert run(full_dbase, "delete-class", "3") == 0


def test_write_config(
    settings: config.Settings, empty_output_folder: pathlib.Path
) -> None:
    """Write an example config file, but do not overwrite one."""
    # Arrange
    config_path = empty_output_folder / "uniattend.toml"
    db_path = empty_output_folder / "cli.db"
    # Act
    first = cli.main(["-d", str(db_path), "config", str(config_path)])
    second = cli.main(["-d", str(db_path), "config", str(config_path)])
    # Assert
    assert first == 0
    assert second == 1
    assert config_path.exists()
