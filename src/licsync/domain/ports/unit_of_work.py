"""Transaction boundary used by the reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from licsync.domain.ports.persistence import (
        ExternalLicenseMirrorRepository,
        LicenseRepository,
        SyncRunRepository,
    )


@dataclass(slots=True)
class LicenseRepositories:
    """Repositories touched by a sync run, all bound to one transaction."""

    licenses: LicenseRepository
    mirror: ExternalLicenseMirrorRepository
    sync_runs: SyncRunRepository


@runtime_checkable
class LicenseUnitOfWork(Protocol):
    """One transaction; leaving the ``with`` block on an exception rolls it back.

    Nothing is persisted unless ``commit`` is called.
    """

    @property
    def repositories(self) -> LicenseRepositories: ...

    def __enter__(self) -> LicenseUnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
