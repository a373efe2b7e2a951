"""Port for the process-wide "is a sync running" state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from licsync.domain.reconciliation.contracts import SyncResult, SyncStatus


@runtime_checkable
class SyncRunToken(Protocol):
    """Guard handed out by ``begin``; leaving the ``with`` block always ends the run."""

    result: SyncResult | None

    def __enter__(self) -> SyncRunToken: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...


@runtime_checkable
class SyncStatusTracker(Protocol):
    def get_status(self) -> SyncStatus:
        """Never blocks; returns an immutable snapshot."""
        ...

    def begin(self, *, force: bool = False) -> SyncRunToken:
        """Claim the run slot or raise ``SyncAlreadyRunning``.

        With ``force`` the call waits for the current run to finish instead of failing.
        """
        ...

    def end(self, token: SyncRunToken, result: SyncResult | None = None) -> None: ...
