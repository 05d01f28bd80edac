"""Test Sqlite student functionality."""

import pytest

from uniattend.model import database, students_mod


def test_get_students(full_dbase: database.DBase) -> None:
    """Get students as Student objects."""
    # Act
    students = students_mod.Student.get_all(full_dbase)
    # Assert
    assert len(students) == 7
    assert all(isinstance(student, students_mod.Student) for student in students)
    assert students[0].roll_no == "CS001"
    assert students[2].registration_no is None


def test_get_students_by_class(full_dbase: database.DBase) -> None:
    """Students are listed in the order they were added."""
    # Act
    students = students_mod.Student.get_by_class(full_dbase, 1)
    # Assert
    assert [student.student_id for student in students] == [1, 2, 3, 7]


def test_get_students_for_missing_class(full_dbase: database.DBase) -> None:
    """A class with no students returns an empty list."""
    # Act, Assert
    assert students_mod.Student.get_by_class(full_dbase, 3) == []
    assert students_mod.Student.get_by_class(full_dbase, 99) == []


def test_create_student(full_dbase: database.DBase) -> None:
    """Add a student to an existing class."""
    # Act
    student = students_mod.Student.create(
        full_dbase,
        name="Hana Sato",
        roll_no="MBA-01",
        class_id=3,
        email="  ",
        mobile="555-0199",
    )
    # Assert
    stored = students_mod.Student.get_by_roll_no(full_dbase, "MBA-01")
    assert stored is not None
    assert stored.student_id == student.student_id
    assert stored.name == "Hana Sato"
    assert stored.email is None
    assert stored.mobile == "555-0199"


def test_create_duplicate_roll_no(full_dbase: database.DBase) -> None:
    """Roll numbers are unique across all classes."""
    # Act, Assert
    with pytest.raises(database.DuplicateKeyError):
        students_mod.Student.create(full_dbase, "Someone Else", "CS001", class_id=3)
    assert students_mod.Student.get_by_class(full_dbase, 3) == []


def test_create_student_missing_class(full_dbase: database.DBase) -> None:
    """A student must belong to an existing class."""
    # Act, Assert
    with pytest.raises(database.NotFoundError):
        students_mod.Student.create(full_dbase, "Lost Student", "X-01", class_id=99)


def test_create_student_blank_name(full_dbase: database.DBase) -> None:
    """Names and roll numbers are required."""
    # Act, Assert
    with pytest.raises(database.ValidationError):
        students_mod.Student.create(full_dbase, " ", "X-01", class_id=1)
    with pytest.raises(database.ValidationError):
        students_mod.Student.create(full_dbase, "No Roll", "", class_id=1)


def test_update_student(full_dbase: database.DBase) -> None:
    """Change a student's email and keep their roll number."""
    # Act
    students_mod.Student.update(
        full_dbase, 2, email="bilal@example.edu", roll_no="CS002"
    )
    # Assert
    student = students_mod.Student.get_existing(full_dbase, 2)
    assert student.email == "bilal@example.edu"
    assert student.roll_no == "CS002"


def test_update_student_duplicate_roll_no(full_dbase: database.DBase) -> None:
    """Cannot take another student's roll number."""
    # Act, Assert
    with pytest.raises(database.DuplicateKeyError):
        students_mod.Student.update(full_dbase, 2, roll_no="CS001")
    assert students_mod.Student.get_existing(full_dbase, 2).roll_no == "CS002"


def test_move_student_to_missing_class(full_dbase: database.DBase) -> None:
    """A student cannot move to a class that does not exist."""
    # Act, Assert
    with pytest.raises(database.NotFoundError):
        students_mod.Student.update(full_dbase, 7, class_id=99)


def test_delete_student(full_dbase: database.DBase) -> None:
    """A student without attendance can be deleted."""
    # Act
    students_mod.Student.delete(full_dbase, 7)
    # Assert
    assert students_mod.Student.get_by_id(full_dbase, 7) is None


def test_delete_student_with_attendance(full_dbase: database.DBase) -> None:
    """Attendance history keeps a student from being deleted."""
    # Act, Assert
    with pytest.raises(database.ReferentialConflictError):
        students_mod.Student.delete(full_dbase, 1)
    with pytest.raises(database.NotFoundError):
        students_mod.Student.delete(full_dbase, 99)


def test_update_student_rejects_id_field(full_dbase: database.DBase) -> None:
    """A student's ID is not an updatable field."""
    # Act, Assert
    with pytest.raises(database.ValidationError):
        students_mod.Student.update(full_dbase, 2, student_id=5)
    assert students_mod.Student.get_existing(full_dbase, 2).name == "Bilal Khan"
