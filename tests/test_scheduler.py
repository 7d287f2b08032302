"""
Tests for ConcurrencyScheduler.

What these tests prove:
- Never more than max_concurrent tasks run at once, even under a burst.
- Tasks start in submission order.
- A failing task does not block the ones queued behind it.
"""

from __future__ import annotations

import threading
import time

import pytest

from calendar_gaps.transport.scheduler import ConcurrencyScheduler


@pytest.fixture
def make_scheduler():
    created = []

    def _make(max_concurrent):
        s = ConcurrencyScheduler(max_concurrent=max_concurrent)
        created.append(s)
        return s

    yield _make
    for s in created:
        s.shutdown(wait=True)


def test_submit_returns_future_with_result(make_scheduler):
    scheduler = make_scheduler(3)
    assert scheduler.submit(lambda: 42).result(timeout=5) == 42


def test_active_count_never_exceeds_bound_under_stress(make_scheduler):
    scheduler = make_scheduler(3)
    lock = threading.Lock()
    running = 0
    peak = 0
    observed = []

    def task(i):
        nonlocal running, peak
        with lock:
            running += 1
            peak = max(peak, running)
        observed.append(scheduler.active_count)
        time.sleep(0.002)
        with lock:
            running -= 1
        return i

    futures = [scheduler.submit(lambda i=i: task(i)) for i in range(60)]
    results = [f.result(timeout=10) for f in futures]

    assert results == list(range(60))
    assert peak <= 3, f"Observed {peak} concurrent tasks with max_concurrent=3"
    assert max(observed) <= 3
    assert scheduler.status() == {"activeCount": 0, "queuedCount": 0, "maxConcurrent": 3}


def test_tasks_start_in_submission_order(make_scheduler):
    scheduler = make_scheduler(1)
    started = []

    futures = [scheduler.submit(lambda i=i: started.append(i)) for i in range(10)]
    for f in futures:
        f.result(timeout=5)

    assert started == list(range(10))


def test_failure_does_not_block_queued_tasks(make_scheduler):
    scheduler = make_scheduler(1)

    def boom():
        raise RuntimeError("boom")

    failing = scheduler.submit(boom)
    after = [scheduler.submit(lambda i=i: i * 2) for i in range(3)]

    with pytest.raises(RuntimeError):
        failing.result(timeout=5)
    assert [f.result(timeout=5) for f in after] == [0, 2, 4]


def test_status_reports_active_and_queued(make_scheduler):
    scheduler = make_scheduler(2)
    gate = threading.Event()

    futures = [scheduler.submit(gate.wait) for _ in range(5)]

    # Dispatch happens synchronously on submit
    assert scheduler.status() == {"activeCount": 2, "queuedCount": 3, "maxConcurrent": 2}

    gate.set()
    for f in futures:
        f.result(timeout=5)
    assert scheduler.active_count == 0
    assert scheduler.queued_count == 0


def test_reset_cancels_only_queued_tasks(make_scheduler):
    scheduler = make_scheduler(1)
    gate = threading.Event()

    running = scheduler.submit(gate.wait)
    queued = [scheduler.submit(lambda: "never") for _ in range(3)]

    scheduler.reset()
    gate.set()

    assert running.result(timeout=5) is True
    assert all(f.cancelled() for f in queued)
    assert scheduler.queued_count == 0


def test_rejects_non_positive_bound():
    with pytest.raises(ValueError):
        ConcurrencyScheduler(max_concurrent=0)


def test_submit_after_shutdown_is_rejected_without_leaking_a_slot():
    scheduler = ConcurrencyScheduler(max_concurrent=2)
    scheduler.shutdown()

    with pytest.raises(RuntimeError):
        scheduler.submit(lambda: 1)

    assert scheduler.status() == {"activeCount": 0, "queuedCount": 0, "maxConcurrent": 2}
