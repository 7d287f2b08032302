# calendar_gaps/validation.py
"""
Input validation for date ranges and preferred windows.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Any, Optional, Tuple

from calendar_gaps.availability import PreferredWindow

MAX_RANGE_DAYS = 365
MIN_WINDOW_MINUTES = 15
MAX_WINDOW_MINUTES = 720

_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


class ValidationError(ValueError):
    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value


def parse_date(value: str | date, field: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field} is required", field, value)
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ValidationError(f"{field} must be YYYY-MM-DD", field, value) from e


def parse_time(value: str | time, field: str = "time") -> time:
    if isinstance(value, time):
        return value
    if not value:
        raise ValidationError(f"{field} is required", field, value)
    m = _TIME_RE.match(str(value).strip())
    if not m:
        raise ValidationError(f"{field} must be HH:MM (24h)", field, value)
    return time(hour=int(m.group(1)), minute=int(m.group(2)))


def validate_date_range(start: str | date, end: str | date) -> Tuple[date, date]:
    """
    Validate and parse a date range.

    Raises:
        ValidationError: bad format, start after end, or span over a year
    """
    start_d = parse_date(start, "start_date")
    end_d = parse_date(end, "end_date")

    if start_d > end_d:
        raise ValidationError("start_date must not be after end_date", "date_range", (start, end))
    if (end_d - start_d).days > MAX_RANGE_DAYS:
        raise ValidationError(f"date range must be at most {MAX_RANGE_DAYS} days", "date_range", (start, end))

    return start_d, end_d


def validate_time_range(start: str | time, end: str | time) -> Tuple[time, time, int]:
    """
    Validate a time-of-day range and return (start, end, duration_minutes).
    """
    start_t = parse_time(start, "start_time")
    end_t = parse_time(end, "end_time")

    duration = (end_t.hour * 60 + end_t.minute) - (start_t.hour * 60 + start_t.minute)
    if duration <= 0:
        raise ValidationError("start_time must be before end_time", "time_range", (start, end))
    if duration < MIN_WINDOW_MINUTES:
        raise ValidationError(f"time range must be at least {MIN_WINDOW_MINUTES} minutes", "time_range", (start, end))
    if duration > MAX_WINDOW_MINUTES:
        raise ValidationError(f"time range must be at most {MAX_WINDOW_MINUTES} minutes", "time_range", (start, end))

    return start_t, end_t, duration


def parse_preferred_window(
    day: str | date,
    start: str | time,
    end: str | time,
    within: Optional[Tuple[date, date]] = None,
) -> PreferredWindow:
    """
    Build a PreferredWindow from user input.

    Args:
        within: optional (range_start, range_end); the window's date must fall inside it
    """
    d = parse_date(day, "date")
    start_t, end_t, _ = validate_time_range(start, end)

    if within is not None and not within[0] <= d <= within[1]:
        raise ValidationError(
            f"preferred window date {d.isoformat()} is outside {within[0].isoformat()}..{within[1].isoformat()}",
            "date",
            day,
        )

    return PreferredWindow(date=d, start_time=start_t, end_time=end_t)
