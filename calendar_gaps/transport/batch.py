# calendar_gaps/transport/batch.py
"""
Run independent requests in fixed-size batches.

- Requests are split into consecutive chunks of `batch_size`.
- Every request in a chunk is submitted at once; the scheduler bounds how
  many actually run.
- A failing request becomes a BatchResult with `error` set. Siblings in the
  same or later chunks are unaffected.
- Between chunks (not after the last) we pause `inter_batch_delay_ms` to stay
  under the provider's rate limits.
- Output order matches input order.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from calendar_gaps.errors import ApiError, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_INTER_BATCH_DELAY_MS = 1000

R = TypeVar("R")


@dataclass(frozen=True)
class BatchResult:
    data: Any = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def chunked(items: Sequence[R], size: int) -> List[Sequence[R]]:
    if size < 1:
        raise ValueError("size must be >= 1")
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchOrchestrator:
    def __init__(
        self,
        submit: Callable[[Any], Future],
        batch_size: int = DEFAULT_BATCH_SIZE,
        inter_batch_delay_ms: int = DEFAULT_INTER_BATCH_DELAY_MS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            submit: schedules one request and returns a Future for its JSON
                (normally CalendarApiClient.execute)
        """
        self._submit = submit
        self.batch_size = batch_size
        self.inter_batch_delay_ms = inter_batch_delay_ms
        self._sleep = sleep

    def run_batches(self, requests: Sequence[Any]) -> List[BatchResult]:
        batches = chunked(list(requests), self.batch_size)
        results: List[BatchResult] = []

        for index, batch in enumerate(batches):
            logger.info(f"Running batch {index + 1}/{len(batches)} ({len(batch)} request(s))")

            futures = [self._submit_isolated(req) for req in batch]
            results.extend(self._collect(future) for future in futures)

            if index < len(batches) - 1 and self.inter_batch_delay_ms > 0:
                self._sleep(self.inter_batch_delay_ms / 1000.0)

        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(f"Batch run finished with {failed}/{len(results)} failed request(s)")
        return results

    def _submit_isolated(self, request: Any) -> Future:
        # A submit that raises synchronously still only fails its own slot.
        try:
            return self._submit(request)
        except Exception as e:
            future: Future = Future()
            future.set_exception(e)
            return future

    @staticmethod
    def _collect(future: Future) -> BatchResult:
        try:
            return BatchResult(data=future.result())
        except ApiError as e:
            return BatchResult(error=e)
        except Exception as e:
            logger.error(f"Unexpected error in batch request: {e}", exc_info=True)
            return BatchResult(error=ApiError(ErrorKind.NETWORK, str(e) or type(e).__name__, status_code=0))
