"""Ports for persisting licenses and sync bookkeeping."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from licsync.domain.model import (
        ExternalLicenseRecord,
        ExternalSyncStatus,
        InternalLicenseRecord,
        SyncRun,
    )


@runtime_checkable
class LicenseLookup(Protocol):
    """Correlation-key lookups used by the record matcher."""

    def find_by_external_app_id(self, app_id: str) -> InternalLicenseRecord | None: ...

    def find_by_external_email(self, email: str) -> InternalLicenseRecord | None: ...

    def find_by_external_count_id(self, count_id: int) -> InternalLicenseRecord | None: ...


@runtime_checkable
class LicenseRepository(LicenseLookup, Protocol):
    """Persistence contract for internal license records."""

    def get(self, license_id: int) -> InternalLicenseRecord | None: ...

    def key_exists(self, key: str) -> bool: ...

    def bulk_insert(self, records: Sequence[InternalLicenseRecord]) -> None: ...

    def bulk_update(self, records: Sequence[InternalLicenseRecord]) -> None: ...

    def find_modified_since_external_sync(self) -> list[InternalLicenseRecord]:
        """Records with a correlation key whose ``updated_at`` is after their last sync."""
        ...

    def find_needing_sync(self, limit: int) -> list[InternalLicenseRecord]:
        """Pending or failed records carrying an appId, least recently updated first."""
        ...

    def count_by_sync_status(self) -> dict[ExternalSyncStatus, int]: ...


@runtime_checkable
class ExternalLicenseMirrorRepository(Protocol):
    """Raw copy of the last external snapshot."""

    def replace(
        self, records: Sequence[ExternalLicenseRecord], *, fetched_at: datetime
    ) -> None: ...

    def load(self) -> list[ExternalLicenseRecord]: ...


@runtime_checkable
class SyncRunRepository(Protocol):
    """Audit trail of finished sync runs."""

    def add(self, run: SyncRun) -> None: ...

    def recent(self, limit: int = 20) -> list[SyncRun]: ...
