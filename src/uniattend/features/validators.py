"""Convert user input to the values stored in the database."""

import datetime
from typing import Optional

import dateutil.parser

from uniattend.model import database


def parse_date(value: datetime.date | str) -> datetime.date:
    """Convert a date or date string to a calendar day.

    Strings are parsed month-first, so "01/10/2024" is 10 January 2024. Use
    ISO 8601 (2024-01-10) to avoid ambiguity.

    Raises:
        ValidationError: If value is not a recognizable date.
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise database.ValidationError("A date is required.")
    try:
        return dateutil.parser.parse(value, dayfirst=False).date()
    except (ValueError, OverflowError) as err:
        raise database.ValidationError(f"Invalid date {value!r}: {err}") from err


def parse_optional_date(
    value: Optional[datetime.date | str],
) -> Optional[datetime.date]:
    """Like parse_date, but None and blank strings mean no date."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_date(value)


def parse_date_range(
    start_date: Optional[datetime.date | str],
    end_date: Optional[datetime.date | str],
) -> tuple[Optional[datetime.date], Optional[datetime.date]]:
    """Parse inclusive date bounds, either of which may be open.

    Raises:
        ValidationError: If start_date is after end_date.
    """
    start = parse_optional_date(start_date)
    end = parse_optional_date(end_date)
    if start is not None and end is not None and start > end:
        raise database.ValidationError(
            f"Start date {start.isoformat()} is after end date {end.isoformat()}."
        )
    return start, end
