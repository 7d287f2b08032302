"""
Shared fakes for request-layer tests.

No test touches the network: the fetcher gets a FakeSession that answers
from a per-URL script, and clocks/sleeps are replaced with manual ones.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from calendar_gaps.config import Settings
from calendar_gaps.transport.client import CalendarApiClient


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        text: Optional[str] = None,
        reason: str = "",
    ):
        self.status_code = status_code
        self.headers = headers or {}
        self.reason = reason
        if text is not None:
            self._text = text
        elif json_body is not None:
            self._text = json.dumps(json_body)
        else:
            self._text = ""

    @property
    def content(self) -> bytes:
        return self._text.encode("utf-8")

    def json(self) -> Any:
        # requests raises a ValueError subclass on bad JSON
        return json.loads(self._text)


Answer = Union[FakeResponse, BaseException, Callable[[], FakeResponse]]


class FakeSession:
    """
    Scripted stand-in for requests.Session.

    `script` maps a URL prefix to a list of answers consumed in order; the
    last answer repeats once the list is exhausted. `default` answers any
    URL with no script.
    """

    def __init__(self, script: Optional[Dict[str, List[Answer]]] = None, default: Optional[Answer] = None):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.default = default
        self.calls: List[Dict[str, Any]] = []
        self.closed = False
        self._lock = threading.Lock()

    def add(self, url_prefix: str, *answers: Answer) -> None:
        with self._lock:
            self.script.setdefault(url_prefix, []).extend(answers)

    def request(self, method, url, headers=None, data=None, timeout=None):
        with self._lock:
            self.calls.append({"method": method, "url": url, "headers": dict(headers or {}), "timeout": timeout})
            answer = self._next_answer(url)

        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            return answer()
        return answer

    def _next_answer(self, url: str) -> Answer:
        # Longest matching prefix wins so "/events?pageToken" can override "/events"
        matches = sorted((p for p in self.script if url.startswith(p)), key=len, reverse=True)
        if matches:
            answers = self.script[matches[0]]
            return answers.pop(0) if len(answers) > 1 else answers[0]
        if self.default is not None:
            return self.default
        raise AssertionError(f"Unexpected request to {url}")

    def calls_to(self, url_prefix: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [c for c in self.calls if c["url"].startswith(url_prefix)]

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []
        self._lock = threading.Lock()

    def __call__(self, seconds: float) -> None:
        with self._lock:
            self.calls.append(seconds)


BASE_URL = "https://calendar.test/v3"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings() -> Settings:
    return Settings(api_base_url=BASE_URL)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def api_client(settings, session, sleeps, clock):
    client = CalendarApiClient(settings, session=session, sleep=sleeps, clock=clock)
    yield client
    client.close()
