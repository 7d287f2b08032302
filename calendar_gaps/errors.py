# calendar_gaps/errors.py
"""
Error values for the request layer.

Every failure the request layer can produce is an ApiError with a `kind`.
Callers decide what to do by matching on `kind`, not on subclasses:

- TEMPORARY / NETWORK / TIMEOUT: retried by the fetcher, then surfaced
- RATE_LIMITED / QUOTA_EXCEEDED / AUTH_FAILED: never retried, surfaced at once
- HTTP_ERROR: any other non-2xx status
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    AUTH_FAILED = "auth_failed"
    TEMPORARY = "temporary"
    HTTP_ERROR = "http_error"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.TEMPORARY, ErrorKind.NETWORK, ErrorKind.TIMEOUT)


_DEFAULT_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Network error while calling the calendar service",
    ErrorKind.TIMEOUT: "Request to the calendar service timed out",
    ErrorKind.RATE_LIMITED: "Rate limit reached; retry later",
    ErrorKind.QUOTA_EXCEEDED: "API quota exceeded; retry tomorrow",
    ErrorKind.AUTH_FAILED: "Calendar authentication failed",
    ErrorKind.TEMPORARY: "Calendar service is temporarily unavailable",
    ErrorKind.HTTP_ERROR: "Calendar service returned an error",
}


class ApiError(Exception):
    """
    A classified request failure.

    Payload fields depend on the kind:
    - status_code: HTTP status when a response was received (0 for transport errors)
    - retry_after_seconds: set for RATE_LIMITED
    - body: parsed error body ({} when the response body was not JSON)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after_seconds: Optional[int] = None,
        body: Optional[Dict[str, Any]] = None,
    ):
        self.kind = kind
        self.message = message or _DEFAULT_MESSAGES[kind]
        self.status_code = status_code
        self.retry_after_seconds = retry_after_seconds
        self.body = body or {}
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.status_code is not None:
            out["status_code"] = self.status_code
        if self.retry_after_seconds is not None:
            out["retry_after_seconds"] = self.retry_after_seconds
        return out

    def __repr__(self) -> str:
        return f"ApiError(kind={self.kind.value!r}, status_code={self.status_code!r}, message={self.message!r})"
