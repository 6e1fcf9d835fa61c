"""Date parsing utilities."""

from datetime import date, datetime, timedelta
from typing import Any

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(date_str: str) -> date:
    """Parse a CLI date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024") and a few
    relative forms used when picking a scrape start date:
    "today", "yesterday", "N days ago", "N months ago".

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    if date_str == "today":
        return today
    if date_str == "yesterday":
        return today - timedelta(days=1)

    parts = date_str.split()
    if len(parts) == 3 and parts[2] == "ago" and parts[0].isdigit():
        count = int(parts[0])
        unit = parts[1].rstrip("s")
        if unit == "day":
            return today - timedelta(days=count)
        if unit == "week":
            return today - timedelta(weeks=count)
        if unit == "month":
            return today - relativedelta(months=count)

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def coerce_date(value: Any) -> date:
    """Coerce a collaborator date value into a calendar date.

    The collaborator emits ISO timestamps such as ``2023-01-10T22:00:00.000Z``.
    The calendar date of the timestamp as written is kept; no timezone
    conversion is applied.

    Raises:
        ValueError: If the value cannot be interpreted as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Could not parse date {value!r}")
    try:
        return date_parser.isoparse(value.strip()).date()
    except ValueError:
        return parse_date(value)
