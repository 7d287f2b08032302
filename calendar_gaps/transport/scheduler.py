# calendar_gaps/transport/scheduler.py
"""
Bounded-concurrency task scheduler.

Tasks are queued FIFO. A dispatch step runs on every submission and every
completion and starts tasks from the front of the queue while fewer than
`max_concurrent` are active. Tasks start in submission order but may finish
in any order. A failing task resolves its own Future with the exception and
never stalls the queue.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 3


@dataclass
class QueueItem:
    task: Callable[[], Any]
    future: Future


class ConcurrencyScheduler:
    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self._queue: Deque[QueueItem] = deque()
        self._active = 0
        self._closed = False
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent,
            thread_name_prefix="calendar-gaps-fetch",
        )

    def submit(self, task: Callable[[], Any]) -> Future:
        """
        Queue `task` and return a Future for its result.

        Raises:
            RuntimeError: the scheduler has been shut down
        """
        future: Future = Future()
        with self._lock:
            if self._closed:
                raise RuntimeError("cannot submit to a scheduler after shutdown")
            self._queue.append(QueueItem(task=task, future=future))
        self._dispatch()
        return future

    def _dispatch(self) -> None:
        while True:
            with self._lock:
                if self._active >= self.max_concurrent or not self._queue:
                    return
                item = self._queue.popleft()
                self._active += 1

            # A caller may have cancelled the Future while it was queued.
            if not item.future.set_running_or_notify_cancel():
                with self._lock:
                    self._active -= 1
                continue

            try:
                self._executor.submit(self._run, item)
            except RuntimeError as e:
                # Executor already shut down: undo the slot and fail this task only.
                with self._lock:
                    self._active -= 1
                item.future.set_exception(e)

    def _run(self, item: QueueItem) -> None:
        try:
            result = item.task()
        except Exception as e:
            item.future.set_exception(e)
        else:
            item.future.set_result(result)
        finally:
            with self._lock:
                self._active -= 1
            self._dispatch()

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    @property
    def queued_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def status(self) -> Dict[str, int]:
        with self._lock:
            return {
                "activeCount": self._active,
                "queuedCount": len(self._queue),
                "maxConcurrent": self.max_concurrent,
            }

    def reset(self) -> None:
        """
        Drop every queued (not yet started) task, cancelling its Future.
        """
        with self._lock:
            pending = list(self._queue)
            self._queue.clear()
        for item in pending:
            item.future.cancel()
        if pending:
            logger.info(f"Scheduler reset, cancelled {len(pending)} queued task(s)")

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self.reset()
        self._executor.shutdown(wait=wait)
