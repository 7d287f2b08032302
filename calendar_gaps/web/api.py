"""
FastAPI wrapper around the availability engine.

This exposes a minimal HTTP API so a frontend can:
- list calendars (read)
- compute free time across ALL calendars for a date range (read)
- inspect request-layer statistics (cache, rate limit, concurrency)

The access token is opaque here: the frontend (or desktop shell) runs the
OAuth flow and sends `Authorization: Bearer <token>` with each request.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from calendar_gaps import availability
from calendar_gaps.config import VERSION, Settings
from calendar_gaps.errors import ApiError, ErrorKind
from calendar_gaps.gcal_tools import GoogleCalendarSource, range_edges
from calendar_gaps.logging_config import setup_logging
from calendar_gaps.mock_data import MockCalendarSource
from calendar_gaps.transport.client import CalendarApiClient
from calendar_gaps.validation import ValidationError, parse_preferred_window, validate_date_range

logger = logging.getLogger(__name__)

# (access_token, tz_name) -> object with list_calendars() / fetch_events(...)
SourceFactory = Callable[[Optional[str], str], Any]


# ----------------------------
# Helpers (internal plumbing)
# ----------------------------

def _bearer_token(request: Request) -> Optional[str]:
    """
    Read the bearer token from the Authorization header (None if absent).
    """
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _http_error(err: ApiError) -> HTTPException:
    """
    Map a request-layer error to an HTTP response the frontend can act on.
    """
    if err.kind == ErrorKind.AUTH_FAILED:
        return HTTPException(status_code=401, detail=err.to_dict())
    if err.kind == ErrorKind.RATE_LIMITED:
        headers = {"Retry-After": str(err.retry_after_seconds or 60)}
        return HTTPException(status_code=429, detail=err.to_dict(), headers=headers)
    if err.kind == ErrorKind.QUOTA_EXCEEDED:
        return HTTPException(status_code=429, detail=err.to_dict())
    return HTTPException(status_code=502, detail=err.to_dict())


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {tz_name}") from e


# ----------------------------
# Request models (API contracts)
# ----------------------------

class PreferredWindowIn(BaseModel):
    date: str = Field(..., description="Date in YYYY-MM-DD")
    start_time: str = Field(..., description="Start time HH:MM (24h)")
    end_time: str = Field(..., description="End time HH:MM (24h)")


class AvailabilityRequest(BaseModel):
    """
    Inputs controlled by the UI.
    """
    start_date: str = Field(..., description="First date of the range (YYYY-MM-DD)")
    end_date: str = Field(..., description="Last date of the range, inclusive (YYYY-MM-DD)")
    preferred_windows: list[PreferredWindowIn] = Field(
        default_factory=list,
        description="If any are given, only their dates are evaluated",
    )
    tz: Optional[str] = Field(None, description="IANA timezone string; defaults to the server setting")
    buffer_minutes: Optional[int] = Field(None, ge=0, le=240, description="Minutes kept free around timed events")
    min_slot_minutes: Optional[int] = Field(None, ge=1, le=720, description="Shortest slot worth reporting")
    include_empty_preferred_days: bool = Field(
        False,
        description="Report preferred dates with no free time as empty days instead of omitting them",
    )


# ----------------------------
# App factory
# ----------------------------

def create_app(
    settings: Optional[Settings] = None,
    client: Optional[CalendarApiClient] = None,
    source_factory: Optional[SourceFactory] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging()

    owns_client = client is None
    client = client or CalendarApiClient(settings)

    def default_source(token: Optional[str], tz_name: str):
        if settings.mock_data:
            return MockCalendarSource(
                tz=_zone(tz_name),
                core_start_hour=settings.core_time_start_hour,
                core_end_hour=settings.core_time_end_hour,
            )
        if not token:
            raise HTTPException(status_code=401, detail="Missing Authorization: Bearer <token> header")
        return GoogleCalendarSource(client, token, time_zone=tz_name)

    make_source = source_factory or default_source

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        # A client passed in by the caller stays open; the caller closes it.
        if owns_client:
            client.close()

    # Create the FastAPI app object (the web server routes requests to functions below)
    app = FastAPI(title="Calendar Gaps API", version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.client = client

    # Dev-only CORS: lets a separately hosted frontend call this API.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,      # Must be False when allow_origins is "*"
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        """
        Health check endpoint.
        """
        return {"ok": True}

    @app.get("/calendars")
    def calendars(request: Request):
        """
        Read-only: list calendars visible to the token's user.
        Returns only what a UI needs (id + summary).
        """
        source = make_source(_bearer_token(request), settings.timezone)
        try:
            cals = source.list_calendars()
        except ApiError as e:
            raise _http_error(e) from e
        return [{"id": c.get("id"), "summary": c.get("summary")} for c in cals]

    @app.post("/availability")
    def compute(req: AvailabilityRequest, request: Request):
        """
        Read-only: compute free slots across every calendar.

        Steps:
        1) Validate the date range and preferred windows
        2) List calendars, then fetch events from all of them (batched)
        3) Compute per-day free slots
        4) Return JSON the UI can render, plus any calendars that failed
        """
        try:
            start, end = validate_date_range(req.start_date, req.end_date)
            windows = [
                parse_preferred_window(w.date, w.start_time, w.end_time, within=(start, end))
                for w in req.preferred_windows
            ]
        except ValidationError as e:
            raise HTTPException(status_code=400, detail={"field": e.field, "message": e.message}) from e

        tz_name = req.tz or settings.timezone
        tz = _zone(tz_name)
        source = make_source(_bearer_token(request), tz_name)

        # Calendar list is all-or-nothing: without it we don't know what to read.
        try:
            cals = source.list_calendars()
        except ApiError as e:
            raise _http_error(e) from e
        calendar_ids = [c["id"] for c in cals if c.get("id")]

        time_min, time_max = range_edges(start, end, tz)
        fetched = source.fetch_events(calendar_ids, time_min, time_max)

        days = availability.compute_availability(
            fetched.events,
            start,
            end,
            windows,
            buffer_minutes=req.buffer_minutes if req.buffer_minutes is not None else settings.buffer_minutes,
            min_slot_minutes=(
                req.min_slot_minutes if req.min_slot_minutes is not None else settings.min_slot_duration_minutes
            ),
            core_start_hour=settings.core_time_start_hour,
            core_end_hour=settings.core_time_end_hour,
            include_empty_preferred_days=req.include_empty_preferred_days,
        )

        return {
            "range": {"start": start.isoformat(), "end": end.isoformat(), "tz": tz_name},
            "calendars_queried": len(calendar_ids),
            "days": [d.to_dict() for d in days],
            "failed_calendars": [
                {"calendar_id": cid, **err.to_dict()} for cid, err in fetched.failures.items()
            ],
        }

    @app.get("/stats")
    def stats():
        """
        Request-layer statistics (cache size, rate limit, concurrency).
        """
        return client.stats()

    return app


app = create_app()
