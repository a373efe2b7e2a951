from __future__ import annotations

import threading

import pytest

from licsync.adapters.status import InMemorySyncStatusTracker
from licsync.domain.reconciliation import SyncAlreadyRunning, SyncResult
from tests.helpers.licenses import NOW


def _result() -> SyncResult:
    return SyncResult(started_at=NOW, finished_at=NOW)


def test_begin_marks_run_in_progress() -> None:
    tracker = InMemorySyncStatusTracker(clock=lambda: NOW)

    with tracker.begin() as token:
        status = tracker.get_status()
        assert status.in_progress
        assert status.current_started_at == NOW
        token.result = _result()

    status = tracker.get_status()
    assert not status.in_progress
    assert status.current_started_at is None
    assert status.last_result is token.result


def test_second_begin_is_refused() -> None:
    tracker = InMemorySyncStatusTracker()

    with tracker.begin(), pytest.raises(SyncAlreadyRunning):
        tracker.begin()


def test_failed_run_keeps_previous_result() -> None:
    tracker = InMemorySyncStatusTracker()
    first = _result()
    with tracker.begin() as token:
        token.result = first

    with pytest.raises(RuntimeError, match="boom"), tracker.begin():
        raise RuntimeError("boom")

    assert tracker.get_status().last_result is first
    assert not tracker.get_status().in_progress


def test_end_is_idempotent() -> None:
    tracker = InMemorySyncStatusTracker()
    token = tracker.begin()

    tracker.end(token)
    tracker.end(token)

    with tracker.begin():
        assert tracker.get_status().in_progress


def test_forced_begin_waits_for_running_sync() -> None:
    tracker = InMemorySyncStatusTracker()
    token = tracker.begin()
    acquired = threading.Event()

    def forced() -> None:
        with tracker.begin(force=True):
            acquired.set()

    worker = threading.Thread(target=forced)
    worker.start()
    assert not acquired.wait(timeout=0.1)

    tracker.end(token, _result())
    worker.join(timeout=5)

    assert acquired.is_set()
    assert not tracker.get_status().in_progress


def test_reset_refuses_while_running() -> None:
    tracker = InMemorySyncStatusTracker()

    with tracker.begin(), pytest.raises(SyncAlreadyRunning):
        tracker.reset()

    with tracker.begin() as token:
        token.result = _result()
    tracker.reset()

    assert tracker.get_status().last_result is None
