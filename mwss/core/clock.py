"""Date helpers for validity windows and retention cutoffs."""

import calendar
from datetime import date, datetime, timezone
from typing import TypeVar

D = TypeVar("D", date, datetime)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def add_years(value: D, years: int) -> D:
    """Same month/day `years` later; Feb 29 falls back to Feb 28."""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


def subtract_months(value: D, months: int) -> D:
    """Calendar-month subtraction, clamping the day to the target month's length."""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
