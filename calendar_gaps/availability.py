# calendar_gaps/availability.py
"""
Availability logic: turn raw calendar events into free time per day.

This module is pure and deterministic (no I/O):
- busy_intervals_for_date: events -> buffer-expanded busy intervals for one date
- merge_intervals: merges overlapping/contiguous intervals
- find_gaps: sweeps one window and returns the gaps between busy intervals
- compute_availability: the whole pass over a date range, optionally
  restricted to user-declared preferred windows

All computation happens on wall-clock (naive) datetimes: event instants keep
the local time carried by their ISO-8601 offset. Ask the service for the zone
you want (events.list `timeZone`); nothing is converted here.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_MINUTES = 20
DEFAULT_MIN_SLOT_MINUTES = 30
DEFAULT_CORE_START_HOUR = 10
DEFAULT_CORE_END_HOUR = 22


@dataclass(frozen=True)
class Interval:
    """
    Simple time interval.
    """
    start: datetime
    end: datetime

    def minutes(self) -> int:
        """
        Return the length of the interval in whole minutes.
        """
        # Floor to whole minutes to keep behavior deterministic and predictable
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class PreferredWindow:
    """
    A user-declared time-of-day range on one date.
    """
    date: date
    start_time: time
    end_time: time

    def to_interval(self) -> Interval:
        return Interval(
            start=datetime.combine(self.date, self.start_time),
            end=datetime.combine(self.date, self.end_time),
        )


@dataclass(frozen=True)
class FreeSlot:
    start_time: time
    end_time: time

    @property
    def minutes(self) -> int:
        start = datetime.combine(date.min, self.start_time)
        end = datetime.combine(date.min, self.end_time)
        return int((end - start).total_seconds() // 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start_time.strftime("%H:%M"),
            "end": self.end_time.strftime("%H:%M"),
            "minutes": self.minutes,
        }


@dataclass(frozen=True)
class DayResult:
    date: date
    slots: List[FreeSlot] = field(default_factory=list)
    total_minutes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "slots": [s.to_dict() for s in self.slots],
            "total_minutes": self.total_minutes,
        }


def parse_rfc3339(dt_str: str) -> datetime:
    """
    Parse an RFC3339 / ISO-8601 datetime string into a datetime.

    Notes:
    - Google returns RFC3339 with timezone offsets (e.g., +09:00).
    - If Google returns a trailing 'Z' (UTC), convert it to '+00:00'.
    """
    # Replace 'Z' with '+00:00' for compatibility with fromisoformat
    return datetime.fromisoformat(dt_str.replace("Z", "+00:00"))


def to_rfc3339(dt: datetime) -> str:
    """
    Convert a datetime to RFC3339 string (Google accepts ISO-8601 with timezone).
    """
    return dt.isoformat()


def _wall_clock(dt: datetime) -> datetime:
    return dt.replace(tzinfo=None)


@dataclass(frozen=True)
class _EventSpan:
    start: datetime
    end: datetime
    first_date: date
    last_date: date
    all_day: bool


def _event_span(event: Dict[str, Any]) -> Optional[_EventSpan]:
    """
    Normalize one raw event, or return None if its shape is unusable.

    All-day events use an exclusive end date; we step it back one day and
    treat the event as covering start-of-first-day to end-of-last-day.
    """
    start = event.get("start")
    end = event.get("end")
    if not isinstance(start, dict) or not isinstance(end, dict):
        return None

    try:
        if start.get("dateTime") and end.get("dateTime"):
            s = _wall_clock(parse_rfc3339(start["dateTime"]))
            e = _wall_clock(parse_rfc3339(end["dateTime"]))
            if e < s:
                return None
            return _EventSpan(start=s, end=e, first_date=s.date(), last_date=s.date(), all_day=False)

        if start.get("date") and end.get("date"):
            first = date.fromisoformat(start["date"])
            last = date.fromisoformat(end["date"]) - timedelta(days=1)
            # Some producers send end == start for one-day events.
            last = max(last, first)
            return _EventSpan(
                start=datetime.combine(first, time.min),
                end=datetime.combine(last, time.max),
                first_date=first,
                last_date=last,
                all_day=True,
            )
    except (TypeError, ValueError):
        logger.debug(f"Skipping event with unparseable times: {event.get('id')}")
        return None

    return None


def busy_intervals_for_date(
    events: Iterable[Dict[str, Any]],
    day: date,
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
) -> List[Interval]:
    """
    Busy intervals for the events that fall on `day`, sorted by start.

    - Timed events belong to the date of their start and are widened by
      `buffer_minutes` on both sides.
    - All-day events belong to every date they cover and are not widened.
    - Malformed events (missing/invalid start or end) are skipped.
    """
    buffer_delta = timedelta(minutes=int(buffer_minutes))
    busy: List[Interval] = []

    for event in events:
        span = _event_span(event)
        if span is None:
            continue
        if not span.first_date <= day <= span.last_date:
            continue

        if span.all_day:
            busy.append(Interval(start=span.start, end=span.end))
        else:
            busy.append(Interval(start=span.start - buffer_delta, end=span.end + buffer_delta))

    busy.sort(key=lambda x: x.start)
    return busy


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """
    Merge overlapping or touching intervals into a sorted, disjoint list.
    """
    merged: List[Interval] = []

    for it in sorted(intervals, key=lambda x: x.start):
        if not merged:
            merged.append(it)
            continue

        last = merged[-1]

        # If the new interval starts after the last ends, it doesn't touch
        if it.start > last.end:
            merged.append(it)
        else:
            # Otherwise, merge by extending the end if needed
            merged[-1] = Interval(start=last.start, end=max(last.end, it.end))

    return merged


def find_gaps(
    window: Interval,
    busy: Sequence[Interval],
    min_slot_minutes: int = DEFAULT_MIN_SLOT_MINUTES,
) -> List[Interval]:
    """
    Sweep `window` and return the gaps not covered by `busy`.

    Args:
        window: the range to scan
        busy: busy intervals sorted by start (see busy_intervals_for_date)
        min_slot_minutes: gaps shorter than this are dropped

    Returns:
        Gaps in chronological order, each at least `min_slot_minutes` long.
    """
    if window.end <= window.start:
        return []

    gaps: List[Interval] = []
    cursor = window.start

    for b in busy:
        # Already behind the cursor
        if b.end < cursor:
            continue
        # Everything from here on starts after the window
        if b.start > window.end:
            break

        # If there's a gap between cursor and the next busy start, that's free time
        if cursor < b.start:
            gaps.append(Interval(start=cursor, end=min(b.start, window.end)))

        # Move cursor forward to the end of the busy interval
        cursor = max(cursor, b.end)

        if cursor >= window.end:
            break

    # Anything after the last busy interval until window end is also free
    if cursor < window.end:
        gaps.append(Interval(start=cursor, end=window.end))

    return [g for g in gaps if g.end > g.start and g.minutes() >= int(min_slot_minutes)]


def target_dates(
    range_start: date,
    range_end: date,
    preferred_windows: Sequence[PreferredWindow] = (),
) -> List[date]:
    """
    Dates to evaluate.

    If any preferred window exists, only the dates they name are evaluated;
    otherwise every date in [range_start, range_end].
    """
    if preferred_windows:
        return sorted({w.date for w in preferred_windows})

    out: List[date] = []
    current = range_start
    while current <= range_end:
        out.append(current)
        current += timedelta(days=1)
    return out


def core_window(day: date, start_hour: int, end_hour: int) -> Interval:
    return Interval(
        start=datetime.combine(day, time(hour=start_hour)),
        end=datetime.combine(day, time(hour=end_hour)),
    )


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def compute_availability(
    events: Sequence[Dict[str, Any]],
    range_start: date | datetime,
    range_end: date | datetime,
    preferred_windows: Optional[Sequence[PreferredWindow]] = None,
    *,
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
    min_slot_minutes: int = DEFAULT_MIN_SLOT_MINUTES,
    core_start_hour: int = DEFAULT_CORE_START_HOUR,
    core_end_hour: int = DEFAULT_CORE_END_HOUR,
    include_empty_preferred_days: bool = False,
) -> List[DayResult]:
    """
    Compute free slots per day.

    Steps per target date:
    1) Busy intervals for that date (buffer-expanded, sorted, merged)
    2) Windows to scan: the date's preferred windows, else core time
    3) Sweep each window for gaps >= min_slot_minutes
    4) Merge gaps across windows and total their minutes

    Dates with no slots are omitted. With include_empty_preferred_days=True,
    dates named by a preferred window are kept with an empty slot list, so a
    UI can show an explicit "no free time" row for a date the user asked about.
    """
    windows = list(preferred_windows or [])
    by_date: Dict[date, List[Interval]] = defaultdict(list)
    for w in windows:
        by_date[w.date].append(w.to_interval())

    results: List[DayResult] = []
    for day in target_dates(_as_date(range_start), _as_date(range_end), windows):
        busy = merge_intervals(busy_intervals_for_date(events, day, buffer_minutes=buffer_minutes))
        scan = by_date.get(day) or [core_window(day, core_start_hour, core_end_hour)]

        gaps: List[Interval] = []
        for window in scan:
            gaps.extend(find_gaps(window, busy, min_slot_minutes=min_slot_minutes))

        merged = merge_intervals(gaps)
        slots = [FreeSlot(start_time=g.start.time(), end_time=g.end.time()) for g in merged]
        total = sum(g.minutes() for g in merged)

        if slots or (include_empty_preferred_days and day in by_date):
            results.append(DayResult(date=day, slots=slots, total_minutes=total))

    logger.debug(f"Computed availability for {len(results)} day(s) from {len(events)} event(s)")
    return results
