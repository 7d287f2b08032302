# calendar_gaps/mock_data.py
"""
Mock calendar source for local development.

Returns a fixed set of calendars and seeded pseudo-random events so the
whole pipeline (fetch -> availability) runs without a token or network.
"""

from __future__ import annotations

import logging
import random
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Dict, List, Sequence
from zoneinfo import ZoneInfo

from calendar_gaps.availability import DEFAULT_CORE_END_HOUR, DEFAULT_CORE_START_HOUR, parse_rfc3339, to_rfc3339
from calendar_gaps.gcal_tools import CalendarFetchResult, dedupe_events

logger = logging.getLogger(__name__)

MOCK_CALENDARS: List[Dict[str, Any]] = [
    {"id": "primary", "summary": "Main", "accessRole": "owner", "primary": True},
    {"id": "work_calendar", "summary": "Work", "accessRole": "owner", "primary": False},
    {"id": "meeting_calendar", "summary": "Meetings", "accessRole": "reader", "primary": False},
    {"id": "project_calendar", "summary": "Projects", "accessRole": "reader", "primary": False},
]

MOCK_EVENT_TITLES = [
    "Weekly sync",
    "Project kickoff",
    "Client meeting",
    "Planning",
    "Progress review",
    "Design review",
    "Code review",
    "1on1",
    "Workshop",
    "Monthly report",
]


class MockCalendarSource:
    def __init__(
        self,
        seed: int = 0,
        tz: tzinfo | None = None,
        core_start_hour: int = DEFAULT_CORE_START_HOUR,
        core_end_hour: int = DEFAULT_CORE_END_HOUR,
    ):
        self.seed = seed
        self.tz = tz or ZoneInfo("UTC")
        self.core_start_hour = core_start_hour
        self.core_end_hour = core_end_hour

    def list_calendars(self) -> List[Dict[str, Any]]:
        return [dict(c) for c in MOCK_CALENDARS]

    def events_for(self, calendar_id: str, first: date, last: date) -> List[Dict[str, Any]]:
        """
        Deterministic events for one calendar: 1-4 per day, starting 9-16h,
        lasting 1-3h, keeping only those fully inside core time.
        """
        # Seed per calendar so results don't depend on query order
        rng = random.Random(f"{self.seed}:{calendar_id}")
        events: List[Dict[str, Any]] = []

        day = first
        while day <= last:
            for i in range(rng.randint(1, 4)):
                start_hour = rng.randint(9, 16)
                duration = rng.randint(1, 3)
                title = rng.choice(MOCK_EVENT_TITLES)

                if start_hour < self.core_start_hour or start_hour + duration > self.core_end_hour:
                    continue

                start = datetime.combine(day, time(hour=start_hour), tzinfo=self.tz)
                end = start + timedelta(hours=duration)
                events.append(
                    {
                        "id": f"mock_{calendar_id}_{day.isoformat()}_{i}",
                        "summary": title,
                        "start": {"dateTime": to_rfc3339(start)},
                        "end": {"dateTime": to_rfc3339(end)},
                    }
                )
            day += timedelta(days=1)

        events.sort(key=lambda e: e["start"]["dateTime"])
        return events

    def fetch_events(self, calendar_ids: Sequence[str], time_min: str, time_max: str) -> CalendarFetchResult:
        first = parse_rfc3339(time_min).astimezone(self.tz).date()
        # time_max is exclusive
        last = (parse_rfc3339(time_max).astimezone(self.tz) - timedelta(microseconds=1)).date()

        events: List[Dict[str, Any]] = []
        for cid in calendar_ids:
            events.extend(self.events_for(cid, first, last))

        logger.info(f"Generated {len(events)} mock event(s) for {len(calendar_ids)} calendar(s)")
        return CalendarFetchResult(events=dedupe_events(events))
