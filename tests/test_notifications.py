"""Test attendance emails."""

import asyncio
import datetime
import smtplib

import pytest

from uniattend import config
from uniattend.features import aggregation, notifications
from uniattend.model import database, emailer
from uniattend.model.attendance_mod import AttendanceEntry


FEB_1 = datetime.date(2024, 2, 1)


class FakeMailer:
    """Collects emails instead of sending them."""

    configured = True

    def __init__(self, failing: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.failing = failing or set()

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if to in self.failing:
            raise smtplib.SMTPRecipientsRefused({to: (550, b"No such user")})
        self.sent.append((to, subject, html_body))
        return True


@pytest.fixture
def class_one_entries() -> list[AttendanceEntry]:
    """Asha present, Bilal absent without an email address, Chen absent."""
    return [AttendanceEntry(1, True), AttendanceEntry(2, False), AttendanceEntry(3, False)]


def test_dispatch(
    full_dbase: database.DBase,
    settings: config.Settings,
    class_one_entries: list[AttendanceEntry],
) -> None:
    """Email students with addresses and send faculty a summary."""
    # Arrange
    mailer = FakeMailer()
    dispatcher = notifications.NotificationDispatcher(full_dbase, settings, mailer)
    # Act
    result = asyncio.run(
        dispatcher.dispatch(1, FEB_1, class_one_entries, "prof@example.edu")
    )
    # Assert
    assert (result.attempted, result.sent, result.failed) == (3, 3, 0)
    by_address = {to: (subject, body) for to, subject, body in mailer.sent}
    assert set(by_address) == {"asha@example.edu", "chen@example.edu", "prof@example.edu"}
    subject, body = by_address["chen@example.edu"]
    assert subject == "Attendance Update - B.Tech Computer Science"
    assert "Absent" in body
    assert "Thursday, February 1, 2024" in body
    subject, body = by_address["prof@example.edu"]
    assert subject == "Attendance Summary - B.Tech Computer Science"
    assert "1 present out of" in body
    assert "33%" in body


def test_dispatch_uses_default_faculty_email(
    full_dbase: database.DBase,
    settings: config.Settings,
    class_one_entries: list[AttendanceEntry],
) -> None:
    """The summary goes to the configured faculty address if none is given."""
    # Arrange
    settings.faculty_email = "dean@example.edu"
    mailer = FakeMailer()
    dispatcher = notifications.NotificationDispatcher(full_dbase, settings, mailer)
    # Act
    asyncio.run(dispatcher.dispatch(1, FEB_1, class_one_entries))
    # Assert
    assert "dean@example.edu" in [to for to, _, _ in mailer.sent]


def test_dispatch_failure_is_isolated(
    full_dbase: database.DBase,
    settings: config.Settings,
    class_one_entries: list[AttendanceEntry],
) -> None:
    """One failed email does not stop the others."""
    # Arrange
    mailer = FakeMailer(failing={"asha@example.edu"})
    dispatcher = notifications.NotificationDispatcher(full_dbase, settings, mailer)
    # Act
    result = asyncio.run(
        dispatcher.dispatch(1, FEB_1, class_one_entries, "prof@example.edu")
    )
    # Assert
    assert result.sent == 2
    assert result.failed == 1
    assert "chen@example.edu" in [to for to, _, _ in mailer.sent]


def test_dispatch_without_smtp_settings(
    full_dbase: database.DBase,
    settings: config.Settings,
    class_one_entries: list[AttendanceEntry],
) -> None:
    """Nothing is sent when the SMTP server is not configured."""
    # Arrange
    dispatcher = notifications.NotificationDispatcher(full_dbase, settings)
    # Act
    result = asyncio.run(
        dispatcher.dispatch(1, FEB_1, class_one_entries, "prof@example.edu")
    )
    # Assert
    assert result.attempted == 3
    assert result.sent == 0


def test_dispatch_missing_class(
    full_dbase: database.DBase, settings: config.Settings
) -> None:
    """Unknown classes are logged and skipped."""
    # Arrange
    mailer = FakeMailer()
    dispatcher = notifications.NotificationDispatcher(full_dbase, settings, mailer)
    # Act
    result = asyncio.run(dispatcher.dispatch(99, FEB_1, [AttendanceEntry(1, True)]))
    # Assert
    assert result == notifications.DispatchResult()
    assert mailer.sent == []


def test_save_attendance_sends_in_background(
    full_dbase: database.DBase, settings: config.Settings
) -> None:
    """Saving attendance emails students on a background thread."""
    # Arrange
    mailer = FakeMailer()
    dispatcher = notifications.NotificationDispatcher(full_dbase, settings, mailer)
    engine = aggregation.AttendanceEngine(full_dbase, dispatcher)
    # Act
    engine.save_attendance(
        2, FEB_1, [AttendanceEntry(4, True), AttendanceEntry(5, False)]
    )
    dispatcher.wait(timeout=10)
    # Assert
    assert [to for to, _, _ in mailer.sent] == ["dana@example.edu"]


def test_unconfigured_mailer(settings: config.Settings) -> None:
    """Mailer.send returns False without contacting a server."""
    # Arrange
    mailer = emailer.Mailer(settings)
    # Act, Assert
    assert not mailer.configured
    assert mailer.send("asha@example.edu", "Subject", "<p>Body</p>") is False


def test_build_message(settings: config.Settings) -> None:
    """Messages come from the configured sender."""
    # Arrange
    settings.smtp_username = "attendance@example.edu"
    settings.sender_email = "noreply@example.edu"
    mailer = emailer.Mailer(settings)
    # Act
    msg = mailer.build_message("asha@example.edu", "Hello", "<p>Hi</p>")
    # Assert
    assert msg["From"] == "Attendance Management System <noreply@example.edu>"
    assert msg["To"] == "asha@example.edu"
    assert msg["Subject"] == "Hello"


@pytest.mark.parametrize(
    "percentage, color", [(95, "#4CAF50"), (90, "#4CAF50"), (80, "#FF9800"), (74, "#F44336")]
)
def test_summary_color(percentage: int, color: str) -> None:
    """Summary percentages are colored by threshold."""
    # Act, Assert
    assert emailer.summary_color(percentage) == color


def test_email_escapes_names() -> None:
    """Student and class names are escaped in the email body."""
    # Act
    subject, body = emailer.attendance_notification(
        "Tech & Arts", "<b>Eve</b>", "R&D <Lab>", FEB_1, True
    )
    # Assert
    assert subject == "Attendance Update - R&D <Lab>"
    assert "&lt;b&gt;Eve&lt;/b&gt;" in body
    assert "<b>Eve</b>" not in body
    assert "R&amp;D &lt;Lab&gt;" in body
    assert "Tech &amp; Arts" in body
