"""Pure functions for recurrence rules.

This module contains the functional core for schedule arithmetic:
- No I/O operations (no database, no console, no files)
- No side effects
- Pure date transformations
- Easy to test

Month and year steps clamp to the end of the target month: a schedule on
the 31st falls on the 30th in April and on the 28th/29th in February, and
returns to the 31st whenever the month has one.
"""

from collections.abc import Iterator
from datetime import date, timedelta
from enum import Enum

from ledgerloop.dates import add_months


class Frequency(str, Enum):
    """How often a recurring definition repeats."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


_DAY_STEPS: dict[Frequency, int] = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}

_MONTH_STEPS: dict[Frequency, int] = {
    Frequency.MONTHLY: 1,
    Frequency.YEARLY: 12,
}

_LABELS: dict[Frequency, str] = {
    Frequency.DAILY: "Daily",
    Frequency.WEEKLY: "Weekly",
    Frequency.BIWEEKLY: "Every 2 weeks",
    Frequency.MONTHLY: "Monthly",
    Frequency.YEARLY: "Yearly",
}


def parse_frequency(value: str) -> Frequency:
    """Parse a frequency name (case-insensitive).

    Raises:
        ValueError: If the name is not a known frequency.
    """
    try:
        return Frequency(value.strip().lower())
    except ValueError:
        choices = ", ".join(f.value for f in Frequency)
        raise ValueError(f"Unknown frequency '{value}' (expected one of: {choices})") from None


def frequency_label(frequency: Frequency) -> str:
    """Human readable label for a frequency (e.g. "Every 2 weeks")."""
    return _LABELS[frequency]


def step(current: date, frequency: Frequency, day_of_month: int | None = None) -> date:
    """Return the occurrence that follows `current`.

    The result is always strictly later than `current`; catch-up loops rely
    on this to terminate.

    Args:
        current: An occurrence date.
        frequency: Schedule frequency.
        day_of_month: Preferred day of the schedule, used by monthly and
            yearly steps so a clamped date (Feb 29) returns to the original
            day (Mar 31) in longer months. Defaults to `current.day`.

    Returns:
        The next occurrence date.
    """
    if frequency in _DAY_STEPS:
        return current + timedelta(days=_DAY_STEPS[frequency])
    return add_months(current, _MONTH_STEPS[frequency], day_of_month)


def iter_occurrences(start: date, frequency: Frequency) -> Iterator[date]:
    """Yield the unbounded chain of occurrences beginning with `start`."""
    current = start
    while True:
        yield current
        current = step(current, frequency, start.day)


def occurrences_through(
    start: date,
    frequency: Frequency,
    until: date,
    end_date: date | None = None,
) -> list[date]:
    """List chained occurrences from `start` up to `until` (inclusive).

    Args:
        start: First occurrence of the schedule.
        frequency: Schedule frequency.
        until: Last date to include.
        end_date: Optional schedule end; nothing after it is returned.

    Returns:
        Occurrence dates in ascending order.
    """
    limit = min(until, end_date) if end_date else until
    result: list[date] = []
    for occurrence in iter_occurrences(start, frequency):
        if occurrence > limit:
            break
        result.append(occurrence)
    return result


def latest_occurrence_on_or_before(start: date, frequency: Frequency, limit: date) -> date | None:
    """Return the last chained occurrence that is <= `limit`.

    Returns:
        The occurrence, or None if the schedule starts after `limit`.
    """
    latest: date | None = None
    for occurrence in iter_occurrences(start, frequency):
        if occurrence > limit:
            break
        latest = occurrence
    return latest
