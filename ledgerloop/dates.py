"""Date utilities for ledgerloop.

Pure functions for calendar arithmetic and ISO formatting.
"""

import calendar
from datetime import date, datetime


def parse_iso_date(value: str) -> date:
    """Parse a YYYY-MM-DD string.

    Args:
        value: Date string in ISO format.

    Returns:
        The parsed date.

    Raises:
        ValueError: If the string is not a valid ISO date.
    """
    return datetime.strptime(value[:10], "%Y-%m-%d").date()


def format_iso_date(value: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return value.strftime("%Y-%m-%d")


def last_day_of_month(year: int, month: int) -> int:
    """Return the number of the last day in a month (28-31)."""
    return calendar.monthrange(year, month)[1]


def add_months(value: date, months: int, day_of_month: int | None = None) -> date:
    """Add calendar months, clamping to the end of the target month.

    If the wanted day does not exist in the target month (e.g. the 31st
    stepping into April), the last valid day of that month is used.

    Args:
        value: Source date.
        months: Number of months to add (may be negative).
        day_of_month: Day to aim for in the target month. Defaults to the
            source date's day.

    Returns:
        The shifted date.
    """
    wanted_day = day_of_month or value.day
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(wanted_day, last_day_of_month(year, month)))


def as_date(value: date | datetime) -> date:
    """Truncate a datetime to its date; dates pass through unchanged."""
    if isinstance(value, datetime):
        return value.date()
    return value
