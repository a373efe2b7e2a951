"""In-process sync status tracker."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from licsync.domain.reconciliation.contracts import SyncStatus
from licsync.domain.reconciliation.errors import SyncAlreadyRunning

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from licsync.domain.ports.status import SyncStatusTracker
    from licsync.domain.reconciliation.contracts import SyncResult

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryRunToken:
    def __init__(self, tracker: InMemorySyncStatusTracker) -> None:
        self._tracker = tracker
        self.result: SyncResult | None = None
        self.closed = False

    def __enter__(self) -> InMemoryRunToken:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        self._tracker.end(self, self.result)
        return False


class InMemorySyncStatusTracker:
    """One run at a time per process.

    The run slot is a lock; the published ``SyncStatus`` is an immutable value whose
    reference is swapped whole, so readers never lock and never see half a result.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._run_lock = threading.Lock()
        self._status = SyncStatus()
        self._clock = clock

    def get_status(self) -> SyncStatus:
        return self._status

    def begin(self, *, force: bool = False) -> InMemoryRunToken:
        if force and self._run_lock.locked():
            log.info("Sync in progress; forced run waits for it to finish")
        if not self._run_lock.acquire(blocking=force):
            raise SyncAlreadyRunning("A license sync is already in progress")
        self._status = SyncStatus(
            in_progress=True,
            last_result=self._status.last_result,
            current_started_at=self._clock(),
        )
        return InMemoryRunToken(self)

    def end(self, token: InMemoryRunToken, result: SyncResult | None = None) -> None:
        if token.closed:
            return
        token.closed = True
        last_result = result if result is not None else self._status.last_result
        self._status = SyncStatus(in_progress=False, last_result=last_result)
        self._run_lock.release()

    def reset(self) -> None:
        """Forget the last result; refuses while a run holds the slot."""

        if self._run_lock.locked():
            raise SyncAlreadyRunning("Cannot reset the tracker while a sync is running")
        self._status = SyncStatus()


if TYPE_CHECKING:
    _tracker_check: SyncStatusTracker = InMemorySyncStatusTracker()
