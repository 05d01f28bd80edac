"""Send attendance emails."""

import datetime
from email.mime import multipart, text
import html
import logging
import smtplib
from typing import cast

from uniattend import config


logger = logging.getLogger(__name__)


class Mailer:
    """Send HTML emails through the SMTP server in the settings.

    If the SMTP server, username, or password is missing, send() does nothing
    and returns False. That is the normal state for installations that do not
    send email, so it is not logged.
    """

    settings: config.Settings

    def __init__(self, settings: config.Settings) -> None:
        """Keep a reference to the settings."""
        self.settings = settings

    @property
    def configured(self) -> bool:
        """True if emails can be sent."""
        return self.settings.mail_configured

    def build_message(self, to: str, subject: str, html_body: str) -> multipart.MIMEMultipart:
        """Create an HTML email."""
        smtp_username = cast(str, self.settings.smtp_username)
        sender_email = self.settings.sender_email or smtp_username
        msg = multipart.MIMEMultipart("alternative")
        msg["Subject"] = subject
        if self.settings.email_sender_name:
            msg["From"] = f"{self.settings.email_sender_name} <{sender_email}>"
        else:
            msg["From"] = sender_email
        msg["To"] = to
        msg.attach(text.MIMEText(html_body, "html"))
        return msg

    def send(self, to: str, subject: str, html_body: str) -> bool:
        """Send one email. Blocks until the SMTP server responds or times out.

        Returns:
            True if the server accepted the message, False otherwise.
        """
        if not self.configured or not to:
            return False
        smtp_server = cast(str, self.settings.smtp_server)
        smtp_username = cast(str, self.settings.smtp_username)
        smtp_password = cast(str, self.settings.smtp_password)
        smtp_port = self.settings.smtp_port
        timeout = self.settings.smtp_timeout
        msg = self.build_message(to, subject, html_body)
        try:
            if smtp_port == 465:
                with smtplib.SMTP_SSL(smtp_server, smtp_port, timeout=timeout) as server:
                    server.login(smtp_username, smtp_password)
                    server.send_message(msg)
            else:  # Port 587 is for TLS encryption.
                with smtplib.SMTP(smtp_server, smtp_port, timeout=timeout) as server:
                    server.starttls()
                    server.login(smtp_username, smtp_password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as err:
            # socket.timeout is an OSError.
            logger.warning("Email to %s failed: %s", to, err)
            return False
        return True


def long_date(event_date: datetime.date) -> str:
    """Format a date like 'Wednesday, January 10, 2024'."""
    return f"{event_date.strftime('%A, %B')} {event_date.day}, {event_date.year}"


def _wrap_html(institution_name: str, body: str) -> str:
    """Surround an email body with the shared header and footer."""
    return f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: Arial, sans-serif;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;
                    border: 1px solid #e0e0e0; border-radius: 5px;">
            <div style="text-align: center; margin-bottom: 20px;">
                <h2 style="color: #b71c1c; margin: 0;">{html.escape(institution_name)}</h2>
                <p style="color: #666; font-size: 14px; margin: 5px 0;">
                    Attendance Management System</p>
            </div>
            {body}
            <div style="margin-top: 30px; padding-top: 15px;
                        border-top: 1px solid #e0e0e0; font-size: 12px; color: #666;">
                <p>This is an automated message from the Attendance Management
                System. Please do not reply to this email.</p>
            </div>
        </div>
    </body>
    </html>
    """


def attendance_notification(
    institution_name: str,
    student_name: str,
    class_name: str,
    event_date: datetime.date,
    is_present: bool,
) -> tuple[str, str]:
    """Subject and HTML body telling a student how they were marked.

    Returns:
        (subject, html_body)
    """
    status = "Present" if is_present else "Absent"
    status_color = "#4CAF50" if is_present else "#F44336"
    body = f"""
            <p>Dear <strong>{html.escape(student_name)}</strong>,</p>
            <p>This is to inform you that your attendance has been marked for
            the following class:</p>
            <div style="background-color: #f9f9f9; padding: 15px;
                        border-radius: 4px; margin: 15px 0;">
                <p><strong>Class:</strong> {html.escape(class_name)}</p>
                <p><strong>Date:</strong> {long_date(event_date)}</p>
                <p><strong>Status:</strong>
                   <span style="color: {status_color}; font-weight: bold;">
                   {status}</span></p>
            </div>
            <p>If you believe this information is incorrect, please contact your
            faculty or department immediately.</p>
    """
    return f"Attendance Update - {class_name}", _wrap_html(institution_name, body)


def summary_color(percentage: int) -> str:
    """Green from 90%, orange from 75%, red below."""
    if percentage >= 90:
        return "#4CAF50"
    if percentage >= 75:
        return "#FF9800"
    return "#F44336"


def attendance_summary(
    institution_name: str,
    class_name: str,
    event_date: datetime.date,
    present_count: int,
    total_count: int,
    percentage: int,
) -> tuple[str, str]:
    """Subject and HTML body summarizing a session for faculty.

    Returns:
        (subject, html_body)
    """
    body = f"""
            <p>Dear Faculty,</p>
            <p>Here is the attendance summary for the class:</p>
            <div style="background-color: #f9f9f9; padding: 15px;
                        border-radius: 4px; margin: 15px 0;">
                <p><strong>Class:</strong> {html.escape(class_name)}</p>
                <p><strong>Date:</strong> {long_date(event_date)}</p>
                <p><strong>Attendance:</strong> {present_count} present out of
                   {total_count} students</p>
                <p><strong>Percentage:</strong>
                   <span style="color: {summary_color(percentage)};
                                font-weight: bold;">{percentage}%</span></p>
            </div>
            <p>You can view detailed attendance information by logging into the
            Attendance Management System.</p>
    """
    return f"Attendance Summary - {class_name}", _wrap_html(institution_name, body)
