# calendar_gaps/transport/cache.py
"""
TTL-bounded response cache for GET requests.

- Keys are "METHOD:URL:BODY", matched exactly (no normalization).
- Keys for authenticated requests are prefixed with a hash of the
  credential, so one caller's responses are never served to another.
- Expiry is lazy: `get` checks the entry's age and drops it if too old.
- Size is bounded: inserting a new key when full evicts the oldest-inserted
  entry (insertion order, reads do not refresh position).
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL_MINUTES = 5.0


def credential_scope(authorization: Optional[str]) -> str:
    """
    Short, stable namespace for a credential (never the credential itself).
    """
    if not authorization:
        return ""
    return hashlib.sha256(authorization.encode("utf-8")).hexdigest()[:16]


def make_cache_key(method: str, url: str, body: Optional[str] = None, scope: str = "") -> str:
    key = f"{(method or 'GET').upper()}:{url}:{body or ''}"
    return f"{scope}|{key}" if scope else key


@dataclass(frozen=True)
class CacheEntry:
    key: str
    data: Any
    stored_at: float


class ResponseCache:
    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_minutes: float = DEFAULT_TTL_MINUTES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_minutes * 60.0
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """
        Return cached data for key, or None if absent or expired.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if self._clock() - entry.stored_at > self.ttl_seconds:
                del self._entries[key]
                logger.debug(f"Cache expired: {key}")
                return None

        logger.debug(f"Cache hit: {key}")
        return entry.data

    def set(self, key: str, data: Any) -> None:
        with self._lock:
            # Overwriting keeps the cache size unchanged; re-insert so the
            # refreshed entry counts as newest.
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                oldest_key, _ = self._entries.popitem(last=False)
                logger.debug(f"Cache full, evicted: {oldest_key}")

            self._entries[key] = CacheEntry(key=key, data=data, stored_at=self._clock())

        logger.debug(f"Cache set: {key}")

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
