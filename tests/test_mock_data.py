from __future__ import annotations

from datetime import date

from calendar_gaps.availability import compute_availability, parse_rfc3339
from calendar_gaps.mock_data import MOCK_CALENDARS, MockCalendarSource

TIME_MIN = "2024-06-10T00:00:00+00:00"
TIME_MAX = "2024-06-17T00:00:00+00:00"


def test_mock_events_are_deterministic_per_seed():
    ids = [c["id"] for c in MOCK_CALENDARS]

    a = MockCalendarSource(seed=1).fetch_events(ids, TIME_MIN, TIME_MAX).events
    b = MockCalendarSource(seed=1).fetch_events(list(reversed(ids)), TIME_MIN, TIME_MAX).events
    c = MockCalendarSource(seed=2).fetch_events(ids, TIME_MIN, TIME_MAX).events

    assert sorted(e["id"] for e in a) == sorted(e["id"] for e in b)
    assert a != c


def test_mock_events_stay_inside_range_and_core_time():
    events = MockCalendarSource(seed=3).fetch_events(["primary"], TIME_MIN, TIME_MAX).events

    assert events, "Seven days should produce at least one event"
    for e in events:
        start = parse_rfc3339(e["start"]["dateTime"])
        end = parse_rfc3339(e["end"]["dateTime"])
        assert date(2024, 6, 10) <= start.date() <= date(2024, 6, 16)
        assert 10 <= start.hour and end.hour <= 22
        assert end > start


def test_mock_source_feeds_the_calculator():
    source = MockCalendarSource(seed=0)
    ids = [c["id"] for c in source.list_calendars()]
    events = source.fetch_events(ids, TIME_MIN, TIME_MAX).events

    results = compute_availability(events, date(2024, 6, 10), date(2024, 6, 16))

    assert all(r.total_minutes > 0 for r in results)
    assert all(date(2024, 6, 10) <= r.date <= date(2024, 6, 16) for r in results)
