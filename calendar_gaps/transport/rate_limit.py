# calendar_gaps/transport/rate_limit.py
"""
Shared rate-limit state.

A single `reset_at` instant (wall-clock epoch seconds). While it lies in the
future, every new request is refused, not just the one that tripped it.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from email.utils import parsedate_to_datetime
from typing import Callable, Mapping, Optional

logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str], now: float) -> Optional[float]:
    """
    Parse a Retry-After header into seconds from `now`.

    Accepts delta-seconds ("120", "1.5") or an HTTP date. Returns None when the
    header is absent or unparseable.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        return max(0.0, seconds) if math.isfinite(seconds) else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    return max(0.0, when.timestamp() - now)


class RateLimitTracker:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._reset_at: Optional[float] = None
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    @property
    def reset_at(self) -> Optional[float]:
        with self._lock:
            return self._reset_at

    def remaining_seconds(self) -> float:
        """
        Seconds until requests are permitted again (0.0 when unrestricted).
        """
        with self._lock:
            if self._reset_at is None:
                return 0.0
            remaining = self._reset_at - self._clock()
            if remaining <= 0:
                self._reset_at = None
                return 0.0
            return remaining

    def remaining_whole_seconds(self) -> int:
        return int(math.ceil(self.remaining_seconds()))

    def is_blocked(self) -> bool:
        return self.remaining_seconds() > 0

    def block_for(self, seconds: float) -> None:
        with self._lock:
            self._reset_at = self._clock() + max(0.0, seconds)
            reset_at = self._reset_at
        logger.info(f"Rate limit active for {seconds:.0f}s (until {reset_at:.0f})")

    def block_until(self, epoch_seconds: float) -> None:
        with self._lock:
            self._reset_at = epoch_seconds
        logger.info(f"Rate limit active until {epoch_seconds:.0f}")

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """
        Update state from response headers.

        Retry-After wins over X-RateLimit-Reset. The reset header only blocks
        when the remaining budget is exhausted (or not reported).
        """
        retry_after = parse_retry_after(headers.get("Retry-After"), self._clock())
        if retry_after is not None:
            self.block_for(retry_after)
            return

        reset = headers.get("X-RateLimit-Reset")
        if reset is None:
            return
        try:
            reset_epoch = float(reset)
        except ValueError:
            logger.debug(f"Ignoring unparseable X-RateLimit-Reset: {reset!r}")
            return

        remaining = headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                if int(remaining) > 0:
                    return
            except ValueError:
                pass

        if reset_epoch > self._clock():
            self.block_until(reset_epoch)

    def reset(self) -> None:
        with self._lock:
            self._reset_at = None
