"""Error taxonomy of a sync run."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from licsync.domain.reconciliation.contracts import SyncResult


class LicenseSyncError(RuntimeError):
    """Base class for all sync errors."""


class SourceUnavailable(LicenseSyncError):
    """The external license API could not be read, even after retries."""


class SyncAlreadyRunning(LicenseSyncError):
    """A run is in progress and the caller did not ask to wait for it."""


class SyncTimedOut(LicenseSyncError):
    """The wall-clock budget ran out; ``result`` describes what was done."""

    def __init__(self, message: str, *, result: SyncResult) -> None:
        super().__init__(message)
        self.result = result


class RecordSyncError(LicenseSyncError):
    """Per-record failure; collected into the result, never fatal to the run."""


class MergeFailed(RecordSyncError):
    pass


class PushFailed(RecordSyncError):
    pass


class RetryableSyncError(LicenseSyncError):
    """Failure that may succeed when the operation is attempted again."""


class LicenseKeyCollision(RetryableSyncError):
    def __init__(self, key: str) -> None:
        super().__init__(f"License key {key!r} is already taken")
        self.key = key
