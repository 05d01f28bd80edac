"""Email students and faculty after attendance is saved.

Notifications are best effort. Every email is sent concurrently in its own
worker thread, a failed email never stops the others, and nothing is reported
back to the code that saved the attendance. Results are only logged.
"""

import asyncio
from collections.abc import Sequence
import dataclasses
import datetime
import logging
import sqlite3
import threading
from typing import Optional

from uniattend import config
from uniattend.features import aggregation
from uniattend.model import attendance_mod, classes_mod, database, emailer, students_mod


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class DispatchResult:
    """Number of emails attempted and sent for one attendance session."""

    attempted: int = 0
    sent: int = 0

    @property
    def failed(self) -> int:
        """Emails that were not sent, including skipped sends."""
        return self.attempted - self.sent


class NotificationDispatcher:
    """Send attendance emails for a saved session."""

    dbase: database.DBase
    settings: config.Settings
    mailer: emailer.Mailer

    def __init__(
        self,
        dbase: database.DBase,
        settings: config.Settings,
        mailer: Optional[emailer.Mailer] = None,
    ) -> None:
        """Use the settings' SMTP server unless another mailer is given."""
        self.dbase = dbase
        self.settings = settings
        self.mailer = mailer if mailer is not None else emailer.Mailer(settings)
        self._threads: list[threading.Thread] = []

    async def _send(self, to: str, subject: str, html_body: str) -> bool:
        """Send one email without blocking the event loop."""
        # Mailer.send has its own socket timeout. This one covers a server that
        #   keeps the connection open without answering.
        return await asyncio.wait_for(
            asyncio.to_thread(self.mailer.send, to, subject, html_body),
            timeout=self.settings.smtp_timeout * 2,
        )

    async def dispatch(
        self,
        class_id: int,
        event_date: datetime.date,
        entries: Sequence[attendance_mod.AttendanceEntry],
        faculty_email: Optional[str] = None,
    ) -> DispatchResult:
        """Email each student their status and send faculty a summary.

        Students without an email address are skipped. The summary goes to
        faculty_email, or to settings.faculty_email if that is not given.
        """
        class_info = classes_mod.Class.get_by_id(self.dbase, class_id)
        if class_info is None:
            logger.warning("No notifications sent: class %s does not exist.", class_id)
            return DispatchResult()
        students = {
            student.student_id: student
            for student in students_mod.Student.get_by_class(self.dbase, class_id)
        }
        institution = self.settings.institution_name
        sends = []
        for entry in entries:
            student = students.get(entry.student_id)
            if student is None or not student.email:
                continue
            subject, html_body = emailer.attendance_notification(
                institution, student.name, class_info.name, event_date, entry.is_present
            )
            sends.append(self._send(student.email, subject, html_body))

        faculty_email = faculty_email or self.settings.faculty_email
        if faculty_email:
            present = sum(1 for entry in entries if entry.is_present)
            subject, html_body = emailer.attendance_summary(
                institution,
                class_info.name,
                event_date,
                present,
                len(entries),
                aggregation.percentage(present, len(entries)),
            )
            sends.append(self._send(faculty_email, subject, html_body))

        outcomes = await asyncio.gather(*sends, return_exceptions=True)
        result = DispatchResult(attempted=len(outcomes))
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.warning("Attendance email failed: %r", outcome)
            elif outcome:
                result.sent += 1
        if self.mailer.configured:
            logger.info(
                "Sent %d of %d attendance emails for %s on %s.",
                result.sent, result.attempted, class_info.name, event_date.isoformat(),
            )
        return result

    def _run(
        self,
        class_id: int,
        event_date: datetime.date,
        entries: Sequence[attendance_mod.AttendanceEntry],
        faculty_email: Optional[str],
    ) -> None:
        """Thread target. Log errors instead of raising them."""
        try:
            asyncio.run(self.dispatch(class_id, event_date, entries, faculty_email))
        except (database.DBaseError, sqlite3.Error):
            logger.exception("Attendance notifications for class %s failed.", class_id)

    def dispatch_in_background(
        self,
        class_id: int,
        event_date: datetime.date,
        entries: Sequence[attendance_mod.AttendanceEntry],
        faculty_email: Optional[str] = None,
    ) -> threading.Thread:
        """Start dispatch() on a daemon thread and return immediately."""
        thread = threading.Thread(
            target=self._run,
            args=(class_id, event_date, list(entries), faculty_email),
            name=f"notify-class-{class_id}",
            daemon=True,
        )
        thread.start()
        self._threads.append(thread)
        return thread

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until background dispatches finish or timeout seconds pass."""
        for thread in self._threads:
            thread.join(timeout)
        self._threads = [thread for thread in self._threads if thread.is_alive()]
