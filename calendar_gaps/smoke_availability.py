# calendar_gaps/smoke_availability.py
"""
Smoke test: free time across all calendars for the next 7 days.

This verifies:
- multi-calendar fetch through the batched request layer
- availability computation on real (or mock) events

Usage:
    GOOGLE_ACCESS_TOKEN=... python -m calendar_gaps.smoke_availability
    CALENDAR_GAPS_MOCK_DATA=1 python -m calendar_gaps.smoke_availability
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from calendar_gaps.availability import compute_availability
from calendar_gaps.config import Settings
from calendar_gaps.gcal_tools import GoogleCalendarSource, range_edges
from calendar_gaps.logging_config import setup_logging
from calendar_gaps.mock_data import MockCalendarSource
from calendar_gaps.transport.client import CalendarApiClient


def main() -> None:
    setup_logging()
    settings = Settings.from_env()
    tz = ZoneInfo(settings.timezone)

    start = datetime.now(tz).date()
    end = start + timedelta(days=6)

    client = CalendarApiClient(settings)
    try:
        if settings.mock_data:
            source = MockCalendarSource(
                tz=tz,
                core_start_hour=settings.core_time_start_hour,
                core_end_hour=settings.core_time_end_hour,
            )
        else:
            token = os.getenv("GOOGLE_ACCESS_TOKEN")
            if not token:
                raise SystemExit("Set GOOGLE_ACCESS_TOKEN (or CALENDAR_GAPS_MOCK_DATA=1)")
            source = GoogleCalendarSource(client, token, time_zone=settings.timezone)

        calendars = source.list_calendars()
        calendar_ids = [c["id"] for c in calendars if c.get("id")]

        time_min, time_max = range_edges(start, end, tz)
        fetched = source.fetch_events(calendar_ids, time_min, time_max)

        days = compute_availability(
            fetched.events,
            start,
            end,
            buffer_minutes=settings.buffer_minutes,
            min_slot_minutes=settings.min_slot_duration_minutes,
            core_start_hour=settings.core_time_start_hour,
            core_end_hour=settings.core_time_end_hour,
        )

        print(f"Range: {start.isoformat()} → {end.isoformat()} ({settings.timezone})")
        print(f"Calendars queried: {len(calendar_ids)}")
        print(f"Events fetched: {len(fetched.events)}")
        for cid, err in fetched.failures.items():
            print(f"  failed: {cid} ({err.kind.value}: {err.message})")
        print()

        for day in days:
            slots = ", ".join(f"{s.start_time:%H:%M}–{s.end_time:%H:%M}" for s in day.slots)
            print(f"{day.date.isoformat()}  {day.total_minutes:>4} min  {slots}")
    finally:
        client.close()


if __name__ == "__main__":
    main()
