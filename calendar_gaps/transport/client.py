# calendar_gaps/transport/client.py
"""
Calendar API client: cache -> scheduler -> resilient fetcher -> network.

One instance owns one cache, one rate-limit tracker, one scheduler and one
batch orchestrator. Build it once and pass it to whoever needs it; tests
call `reset()` between cases instead of relying on module-level state.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import Counter
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from calendar_gaps.config import VERSION, Settings
from calendar_gaps.errors import ApiError, ErrorKind
from calendar_gaps.transport.batch import BatchOrchestrator, BatchResult
from calendar_gaps.transport.cache import ResponseCache
from calendar_gaps.transport.fetcher import ApiRequest, ResilientFetcher, RetryPolicy
from calendar_gaps.transport.rate_limit import RateLimitTracker
from calendar_gaps.transport.scheduler import ConcurrencyScheduler

logger = logging.getLogger(__name__)


class CalendarApiClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or Settings()
        s = self.settings

        self.cache = ResponseCache(
            max_size=s.cache_max_size,
            ttl_minutes=s.cache_ttl_minutes,
            clock=clock,
        )
        self.rate_limit = RateLimitTracker(clock=clock)
        self.fetcher = ResilientFetcher(
            rate_limit=self.rate_limit,
            session=session,
            retry=RetryPolicy(
                max_attempts=s.max_retry_attempts,
                initial_delay_ms=s.initial_retry_delay_ms,
                multiplier=s.backoff_multiplier,
                max_delay_ms=s.max_retry_delay_ms,
            ),
            timeout_ms=s.request_timeout_ms,
            default_rate_limit_seconds=s.rate_limit_default_seconds,
            default_headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "User-Agent": f"calendar-gaps/{VERSION}",
            },
            sleep=sleep,
            rng=rng,
        )
        self.scheduler = ConcurrencyScheduler(max_concurrent=s.max_concurrent_requests)
        self.batches = BatchOrchestrator(
            submit=self.execute,
            batch_size=s.batch_size,
            inter_batch_delay_ms=s.inter_batch_delay_ms,
            sleep=sleep,
        )

        self._request_counts: Counter = Counter()
        self._counts_lock = threading.Lock()

        logger.info(
            f"Calendar API client initialized (base={s.api_base_url}, "
            f"max_concurrent={s.max_concurrent_requests}, batch_size={s.batch_size})"
        )

    def url(self, path: str) -> str:
        return self.settings.api_base_url.rstrip("/") + "/" + path.lstrip("/")

    def execute(self, request: ApiRequest) -> Future:
        """
        Schedule `request`. Cached GET responses resolve immediately.
        """
        if request.is_idempotent:
            cached = self.cache.get(request.cache_key)
            if cached is not None:
                future: Future = Future()
                future.set_result(cached)
                return future

        return self.scheduler.submit(lambda: self._fetch_and_store(request))

    def request(self, request: ApiRequest) -> Any:
        """
        Blocking variant of `execute`.

        Raises:
            ApiError
        """
        return self.execute(request).result()

    def run_batches(self, requests_: Sequence[ApiRequest]) -> List[BatchResult]:
        return self.batches.run_batches(requests_)

    def authenticated(self, url: str, access_token: Optional[str]) -> ApiRequest:
        """
        Build a GET request carrying the caller's bearer token.

        The token is opaque here; it is supplied by whoever did the OAuth flow.
        """
        if not access_token:
            raise ApiError(ErrorKind.AUTH_FAILED, "No access token supplied", status_code=401)
        return ApiRequest(url=url, headers={"Authorization": f"Bearer {access_token}"})

    def _fetch_and_store(self, request: ApiRequest) -> Any:
        with self._counts_lock:
            self._request_counts[request.url] += 1

        data = self.fetcher.fetch(request)
        if request.is_idempotent:
            self.cache.set(request.cache_key, data)
        return data

    def stats(self) -> Dict[str, Any]:
        with self._counts_lock:
            counts = dict(self._request_counts)
        return {
            "cacheSize": len(self.cache),
            "rateLimitResetAt": self.rate_limit.reset_at,
            "concurrency": self.scheduler.status(),
            "requestCounts": counts,
        }

    def reset(self) -> None:
        self.cache.clear()
        self.rate_limit.reset()
        self.scheduler.reset()
        with self._counts_lock:
            self._request_counts.clear()
        logger.info("Calendar API client reset")

    def close(self) -> None:
        self.scheduler.shutdown(wait=True)
        self.fetcher.session.close()
