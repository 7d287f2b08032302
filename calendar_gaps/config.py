# calendar_gaps/config.py
"""
Runtime settings.

All values are plain numbers/strings. Defaults match the production
constants; every field can be overridden with a CALENDAR_GAPS_<FIELD>
environment variable (e.g. CALENDAR_GAPS_MAX_CONCURRENT_REQUESTS=5).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict

VERSION = "0.3.0"

ENV_PREFIX = "CALENDAR_GAPS_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    # Request layer
    api_base_url: str = "https://www.googleapis.com/calendar/v3"
    max_concurrent_requests: int = 3
    max_retry_attempts: int = 3
    initial_retry_delay_ms: int = 1000
    max_retry_delay_ms: int = 5000
    backoff_multiplier: float = 2.0
    request_timeout_ms: int = 10000
    rate_limit_default_seconds: int = 60
    batch_size: int = 5
    inter_batch_delay_ms: int = 1000
    cache_max_size: int = 100
    cache_ttl_minutes: float = 5.0
    event_page_size: int = 250

    # Availability
    buffer_minutes: int = 20
    min_slot_duration_minutes: int = 30
    core_time_start_hour: int = 10
    core_time_end_hour: int = 22
    timezone: str = "UTC"

    # Development
    mock_data: bool = False

    def __post_init__(self) -> None:
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be >= 1")
        if self.max_retry_attempts < 1:
            raise ValueError("max_retry_attempts must be >= 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if not 0 <= self.core_time_start_hour < self.core_time_end_hour <= 23:
            raise ValueError("core time must satisfy 0 <= start < end <= 23")

    @classmethod
    def from_env(cls, environ: Dict[str, str] | None = None) -> "Settings":
        """
        Build settings from CALENDAR_GAPS_* environment variables.

        Unset variables keep their defaults. A value that cannot be converted
        raises ValueError naming the variable.
        """
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        for f in fields(cls):
            var = ENV_PREFIX + f.name.upper()
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                continue
            raw = raw.strip()
            try:
                if f.type in ("bool", bool):
                    overrides[f.name] = raw.lower() in _TRUE_VALUES
                elif f.type in ("int", int):
                    overrides[f.name] = int(raw)
                elif f.type in ("float", float):
                    overrides[f.name] = float(raw)
                else:
                    overrides[f.name] = raw
            except ValueError as e:
                raise ValueError(f"Invalid value for {var}: {raw!r}") from e

        return cls(**overrides)

    def with_overrides(self, **changes: Any) -> "Settings":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
