# calendar_gaps/gcal_tools.py
"""
Read-only Google Calendar tools on top of CalendarApiClient.

- Read any calendars the user can access (multi-calendar support)
- Never write: no create/patch/delete here
- One calendar failing never hides events from the others
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode
from zoneinfo import ZoneInfo

from calendar_gaps.availability import to_rfc3339
from calendar_gaps.errors import ApiError
from calendar_gaps.transport.client import CalendarApiClient
from calendar_gaps.transport.fetcher import ApiRequest

logger = logging.getLogger(__name__)

CALENDAR_LIST_PATH = "/users/me/calendarList"


@dataclass
class CalendarFetchResult:
    events: List[Dict[str, Any]] = field(default_factory=list)
    failures: Dict[str, ApiError] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failures


def range_edges(start: date, end: date, tz: ZoneInfo) -> Tuple[str, str]:
    """
    RFC3339 edges covering whole days start..end (inclusive) in `tz`.

    timeMax is midnight after `end`, so events on the last day are included.
    """
    time_min = datetime.combine(start, time.min, tzinfo=tz)
    time_max = datetime.combine(end + timedelta(days=1), time.min, tzinfo=tz)
    return to_rfc3339(time_min), to_rfc3339(time_max)


def list_calendars(client: CalendarApiClient, access_token: str) -> List[Dict[str, Any]]:
    """
    List calendars available on the user's calendar list.
    Includes primary + subscribed + shared calendars.

    Returns:
        Simplified list: [{id, summary, accessRole, primary}, ...]

    Raises:
        ApiError
    """
    request = client.authenticated(client.url(CALENDAR_LIST_PATH), access_token)
    resp = client.request(request)
    items = resp.get("items", [])
    out: List[Dict[str, Any]] = []

    for cal in items:
        out.append(
            {
                "id": cal.get("id"),
                "summary": cal.get("summary"),
                "accessRole": cal.get("accessRole"),
                "primary": cal.get("primary", False),
            }
        )

    return out


def events_request(
    client: CalendarApiClient,
    access_token: str,
    calendar_id: str,
    time_min: str,
    time_max: str,
    page_token: Optional[str] = None,
    time_zone: Optional[str] = None,
) -> ApiRequest:
    """
    Build the events.list request for one calendar.

    Args:
        time_min/time_max: RFC3339 timestamps (the requested range edges)
        time_zone: IANA zone the service should express event times in
    """
    params = {
        "timeMin": time_min,
        "timeMax": time_max,
        "singleEvents": "true",      # Expand recurring events into individual instances
        "orderBy": "startTime",      # Makes results deterministic and easier to debug
        "maxResults": str(client.settings.event_page_size),
    }
    if time_zone:
        params["timeZone"] = time_zone
    if page_token:
        params["pageToken"] = page_token

    path = f"/calendars/{quote(calendar_id, safe='')}/events?{urlencode(params)}"
    return client.authenticated(client.url(path), access_token)


def dedupe_events(events: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Drop events that appear more than once (e.g. an invite on two calendars).

    Identity is id + start + end; first occurrence wins.
    """
    seen = set()
    out: List[Dict[str, Any]] = []
    for ev in events:
        start = ev.get("start") or {}
        end = ev.get("end") or {}
        key = (
            ev.get("id"),
            start.get("dateTime") or start.get("date"),
            end.get("dateTime") or end.get("date"),
        )
        if ev.get("id") is not None and key in seen:
            continue
        seen.add(key)
        out.append(ev)
    return out


def fetch_all_events(
    client: CalendarApiClient,
    access_token: str,
    calendar_ids: Sequence[str],
    time_min: str,
    time_max: str,
    time_zone: Optional[str] = None,
) -> CalendarFetchResult:
    """
    Fetch events from every calendar in the range.

    The first page of every calendar goes through batched execution; calendars
    with more pages are then followed page by page. A calendar that fails at
    any page is recorded in `failures` and contributes no events.
    """
    ids = list(calendar_ids)
    requests_ = [events_request(client, access_token, cid, time_min, time_max, time_zone=time_zone) for cid in ids]
    results = client.run_batches(requests_)

    result = CalendarFetchResult()
    for cid, res in zip(ids, results):
        if not res.ok:
            logger.warning(f"Failed to fetch events for {cid}: {res.error.kind.value}")
            result.failures[cid] = res.error
            continue

        events: List[Dict[str, Any]] = list(res.data.get("items", []))
        page_token = res.data.get("nextPageToken")

        # Google Calendar API paginates results; we loop until done.
        try:
            while page_token:
                page = client.request(
                    events_request(client, access_token, cid, time_min, time_max, page_token, time_zone)
                )
                events.extend(page.get("items", []))
                page_token = page.get("nextPageToken")
        except ApiError as e:
            logger.warning(f"Failed to fetch later pages for {cid}: {e.kind.value}")
            result.failures[cid] = e
            continue

        result.events.extend(events)

    result.events = dedupe_events(result.events)
    logger.info(
        f"Fetched {len(result.events)} event(s) from {len(ids) - len(result.failures)}/{len(ids)} calendar(s)"
    )
    return result


class GoogleCalendarSource:
    """
    Calendar source backed by the real Google Calendar API.
    """

    def __init__(self, client: CalendarApiClient, access_token: str, time_zone: Optional[str] = None):
        self.client = client
        self.access_token = access_token
        self.time_zone = time_zone

    def list_calendars(self) -> List[Dict[str, Any]]:
        return list_calendars(self.client, self.access_token)

    def fetch_events(self, calendar_ids: Sequence[str], time_min: str, time_max: str) -> CalendarFetchResult:
        return fetch_all_events(self.client, self.access_token, calendar_ids, time_min, time_max, self.time_zone)
