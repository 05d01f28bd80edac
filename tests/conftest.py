"""Pytest fixtures."""

import json
import pathlib
import shutil

import pytest

from uniattend import config
from uniattend.model import database


TEST_FOLDER = pathlib.Path(__file__).parent
DATA_FOLDER = TEST_FOLDER / "data"
OUTPUT_FOLDER = TEST_FOLDER / "output"


@pytest.fixture()
def empty_output_folder() -> pathlib.Path:
    """Create an empty output folder prior to each test."""
    if OUTPUT_FOLDER.exists():
        for item in OUTPUT_FOLDER.iterdir():
            if item.is_dir():
                shutil.rmtree(item, ignore_errors=True)
            else:
                item.unlink()
    else:
        OUTPUT_FOLDER.mkdir(parents=True)
    return OUTPUT_FOLDER


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch) -> config.Settings:
    """Default settings with email disabled.

    Replaces the module-level settings object so that tests never share
    settings with each other.
    """
    monkeypatch.delenv(config.SMTP_PASSWORD_ENV_VAR, raising=False)
    test_settings = config.Settings()
    monkeypatch.setattr(config, "settings", test_settings)
    return test_settings


@pytest.fixture
def empty_database(empty_output_folder: pathlib.Path) -> database.DBase:
    """An empty UniAttend database, with tables created."""
    return database.DBase(OUTPUT_FOLDER / "testdatabase.db", create_new=True)


@pytest.fixture
def empty_database2(empty_output_folder: pathlib.Path) -> database.DBase:
    """A second empty UniAttend database, with tables created."""
    return database.DBase(OUTPUT_FOLDER / "testdatabase2.db", create_new=True)


@pytest.fixture
def attendance_test_data() -> dict[str, list]:
    """Get test data as a dictionary.

    Dictionary has three keys: classes, students, and attendance, where each
    key is a list of dictionaries.
    """
    with open(DATA_FOLDER / "testdata-full.json") as jfile:
        test_data = json.load(jfile)
    return test_data


@pytest.fixture
def full_dbase(
    empty_database: database.DBase, attendance_test_data: dict[str, list]
) -> database.DBase:
    """Database with classes, students, and attendance.

    Class 1 has corrected and tied attendance records, class 2 has a single
    session, and class 3 has no students.
    """
    empty_database.load_from_dict(attendance_test_data)
    return empty_database
