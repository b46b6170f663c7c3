"""Time and calendar-date utilities.

Consultation slots are compared at calendar-day granularity. Every date
entering the core goes through ``normalize_date`` exactly once so that a
datetime or ISO string never leaks a time-of-day or timezone component
into a slot comparison.
"""

from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Get the current calendar date in UTC."""
    return utc_now().date()


def add_days(day: date, days: int) -> date:
    """Shift a calendar date by a number of days."""
    return day + timedelta(days=days)


def normalize_date(value: date | datetime | str) -> date:
    """Reduce a date-like value to its calendar date.

    Args:
        value: A date, a datetime (its own calendar date is kept, no
            timezone conversion is applied) or an ISO 8601 string such as
            ``2024-01-10`` or ``2024-01-10T09:30:00+02:00``

    Returns:
        The calendar date

    Raises:
        ValueError: If the value cannot be interpreted as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty date value")
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            raise ValueError(f"Could not parse date: {value}") from None
    raise ValueError(f"Unsupported date value: {value!r}")


def normalize_time(value: time | str) -> str:
    """Turn a time-of-day into the opaque key stored on a consultation.

    ``datetime.time`` values become ``HH:MM`` (``HH:MM:SS`` when seconds
    are set). Strings are only stripped; they are compared verbatim.
    """
    if isinstance(value, time):
        if value.second or value.microsecond:
            return value.strftime("%H:%M:%S")
        return value.strftime("%H:%M")
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty time value")
        return text
    raise ValueError(f"Unsupported time value: {value!r}")
