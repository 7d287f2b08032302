"""
Input validation tests for date ranges and preferred windows.
"""

from __future__ import annotations

from datetime import date, time

import pytest

from calendar_gaps.availability import PreferredWindow
from calendar_gaps.validation import (
    ValidationError,
    parse_preferred_window,
    parse_time,
    validate_date_range,
    validate_time_range,
)


def test_valid_date_range_is_parsed():
    assert validate_date_range("2024-06-10", "2024-06-16") == (date(2024, 6, 10), date(2024, 6, 16))
    assert validate_date_range(date(2024, 6, 10), date(2024, 6, 10)) == (date(2024, 6, 10), date(2024, 6, 10))


@pytest.mark.parametrize(
    "start, end, field",
    [
        ("2024-06-16", "2024-06-10", "date_range"),
        ("2024-01-01", "2025-01-02", "date_range"),
        ("06/10/2024", "2024-06-16", "start_date"),
        ("2024-06-10", "", "end_date"),
    ],
)
def test_invalid_date_ranges_name_the_field(start, end, field):
    with pytest.raises(ValidationError) as exc:
        validate_date_range(start, end)
    assert exc.value.field == field


def test_full_year_range_is_allowed():
    validate_date_range("2024-01-01", "2024-12-31")


@pytest.mark.parametrize("raw, expected", [("9:05", time(9, 5)), ("09:05", time(9, 5)), ("23:59", time(23, 59))])
def test_parse_time_accepts_24h(raw, expected):
    assert parse_time(raw) == expected


@pytest.mark.parametrize("raw", ["24:00", "12:60", "9am", "12", ""])
def test_parse_time_rejects_bad_values(raw):
    with pytest.raises(ValidationError):
        parse_time(raw)


def test_time_range_duration_bounds():
    assert validate_time_range("09:00", "09:15") == (time(9), time(9, 15), 15)
    assert validate_time_range("08:00", "20:00")[2] == 720

    for start, end in [("09:00", "09:14"), ("08:00", "20:01"), ("10:00", "10:00"), ("11:00", "10:00")]:
        with pytest.raises(ValidationError) as exc:
            validate_time_range(start, end)
        assert exc.value.field == "time_range", f"{start}-{end} should fail on time_range"


def test_preferred_window_must_fall_inside_range():
    within = (date(2024, 6, 10), date(2024, 6, 16))

    w = parse_preferred_window("2024-06-12", "09:00", "12:00", within=within)
    assert w == PreferredWindow(date(2024, 6, 12), time(9), time(12))

    with pytest.raises(ValidationError) as exc:
        parse_preferred_window("2024-06-17", "09:00", "12:00", within=within)
    assert exc.value.field == "date"


def test_validation_error_is_a_value_error():
    assert issubclass(ValidationError, ValueError)
