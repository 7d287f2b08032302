# calendar_gaps/transport/fetcher.py
"""
One HTTP call with timeout, retry/backoff and error classification.

Per logical request:
  check rate limit -> (blocked: fail) | send -> success
                                         | classify -> retry wait -> send
                                                    | fail

Retries are an explicit bounded loop. Only TEMPORARY / NETWORK / TIMEOUT
errors are retried; RATE_LIMITED, QUOTA_EXCEEDED and AUTH_FAILED surface
immediately so the caller can decide what to tell the user.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import requests
from requests.structures import CaseInsensitiveDict

from calendar_gaps.errors import ApiError, ErrorKind
from calendar_gaps.transport.cache import credential_scope, make_cache_key
from calendar_gaps.transport.rate_limit import RateLimitTracker, parse_retry_after

logger = logging.getLogger(__name__)

JITTER_RATIO = 0.25


@dataclass(frozen=True)
class ApiRequest:
    """
    A single request to the calendar service.

    `url` is complete (query string included) so the cache key is exact.
    The cache key is also scoped by the Authorization header.
    """
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    body: Optional[str] = None

    @property
    def is_idempotent(self) -> bool:
        return self.method.upper() == "GET"

    @property
    def cache_key(self) -> str:
        authorization = next((v for k, v in self.headers.items() if k.lower() == "authorization"), None)
        return make_cache_key(self.method, self.url, self.body, scope=credential_scope(authorization))


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    multiplier: float = 2.0
    max_delay_ms: int = 5000

    def base_delay_seconds(self, attempt: int) -> float:
        """
        Un-jittered delay before the retry that follows `attempt` (0-based).
        """
        delay_ms = min(self.initial_delay_ms * (self.multiplier ** attempt), self.max_delay_ms)
        return delay_ms / 1000.0

    def delay_seconds(self, attempt: int, rng: random.Random | None = None) -> float:
        """
        Backoff delay with uniform +/-25% jitter, floored at zero.
        """
        base = self.base_delay_seconds(attempt)
        uniform = (rng or random).uniform(-JITTER_RATIO, JITTER_RATIO)
        return max(0.0, base + base * uniform)


def _parse_error_body(response: requests.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_message(body: Dict[str, Any]) -> Optional[str]:
    err = body.get("error")
    if isinstance(err, dict):
        msg = err.get("message")
        return str(msg) if msg else None
    if isinstance(err, str):
        return err
    return None


class ResilientFetcher:
    def __init__(
        self,
        rate_limit: RateLimitTracker,
        session: Optional[requests.Session] = None,
        retry: RetryPolicy = RetryPolicy(),
        timeout_ms: int = 10000,
        default_rate_limit_seconds: int = 60,
        default_headers: Optional[Dict[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.rate_limit = rate_limit
        self.session = session or requests.Session()
        self.retry = retry
        self.timeout_seconds = timeout_ms / 1000.0
        self.default_rate_limit_seconds = default_rate_limit_seconds
        self.default_headers = dict(default_headers or {})
        self._sleep = sleep
        self._rng = rng or random.Random()

    def fetch(self, request: ApiRequest) -> Any:
        """
        Execute `request` and return the decoded JSON body.

        Raises:
            ApiError: the last classified error once retries are exhausted,
                or immediately for non-retryable kinds.
        """
        self._check_rate_limit()

        attempt = 0
        while True:
            try:
                return self._send(request, attempt)
            except ApiError as err:
                if not err.retryable or attempt + 1 >= self.retry.max_attempts:
                    if err.retryable:
                        logger.error(
                            f"Request failed after {attempt + 1} attempt(s): "
                            f"{request.method} {request.url} ({err.kind.value}: {err.message})"
                        )
                    else:
                        logger.warning(f"Request failed: {request.method} {request.url} ({err.kind.value})")
                    raise

                # A retryable response may also carry Retry-After; honor it before resending.
                delay = max(self.retry.delay_seconds(attempt, self._rng), self.rate_limit.remaining_seconds())
                logger.warning(
                    f"Retrying {request.method} {request.url} in {delay:.2f}s "
                    f"(attempt {attempt + 1}/{self.retry.max_attempts}, {err.kind.value}: {err.message})"
                )
                self._sleep(delay)
                attempt += 1

    def _check_rate_limit(self) -> None:
        wait = self.rate_limit.remaining_whole_seconds()
        if wait > 0:
            raise ApiError(
                ErrorKind.RATE_LIMITED,
                f"Rate limit active; retry in {wait}s",
                status_code=429,
                retry_after_seconds=wait,
            )

    def _send(self, request: ApiRequest, attempt: int) -> Any:
        headers = {**self.default_headers, **request.headers}
        logger.debug(f"{request.method} {request.url} (attempt {attempt + 1})")

        try:
            response = self.session.request(
                request.method,
                request.url,
                headers=headers,
                data=request.body,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.Timeout as e:
            raise ApiError(ErrorKind.TIMEOUT, status_code=0) from e
        except requests.exceptions.RequestException as e:
            raise ApiError(ErrorKind.NETWORK, f"Network error: {e}", status_code=0) from e

        response_headers = CaseInsensitiveDict(response.headers or {})
        self.rate_limit.update_from_headers(response_headers)

        if not 200 <= response.status_code < 300:
            raise self._classify(response, response_headers)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                ErrorKind.HTTP_ERROR,
                "Response body is not valid JSON",
                status_code=response.status_code,
            ) from e

    def _classify(self, response: requests.Response, headers: CaseInsensitiveDict) -> ApiError:
        status = response.status_code
        body = _parse_error_body(response)
        message = _error_message(body)

        if status == 429:
            retry_after = parse_retry_after(headers.get("Retry-After"), self.rate_limit.now())
            seconds = math.ceil(retry_after) if retry_after is not None else self.default_rate_limit_seconds
            self.rate_limit.block_for(seconds)
            return ApiError(
                ErrorKind.RATE_LIMITED,
                message,
                status_code=status,
                retry_after_seconds=seconds,
                body=body,
            )

        if status == 403 and message and "quota" in message.lower():
            return ApiError(ErrorKind.QUOTA_EXCEEDED, message, status_code=status, body=body)

        if status in (401, 403):
            return ApiError(ErrorKind.AUTH_FAILED, message, status_code=status, body=body)

        if status >= 500 or status == 408:
            return ApiError(ErrorKind.TEMPORARY, message, status_code=status, body=body)

        reason = getattr(response, "reason", "") or ""
        return ApiError(
            ErrorKind.HTTP_ERROR,
            message or f"HTTP {status}: {reason}".strip(),
            status_code=status,
            body=body,
        )
