"""Utility functions."""

from consultdesk.utils.time import (
    add_days,
    normalize_date,
    normalize_time,
    utc_now,
    utc_today,
)

__all__ = [
    "utc_now",
    "utc_today",
    "add_days",
    "normalize_date",
    "normalize_time",
]
