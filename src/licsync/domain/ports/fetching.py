"""Ports for talking to the external license source."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from licsync.domain.model import ExternalLicenseRecord, InternalLicenseRecord


@dataclass(frozen=True, slots=True)
class RejectedLicense:
    """An external record that could not be turned into an ExternalLicenseRecord."""

    reference: str
    error: str


@dataclass(slots=True)
class ExternalLicenseFetchResult:
    """All license records fetched from the external source in one pass."""

    records: list[ExternalLicenseRecord] = field(default_factory=list["ExternalLicenseRecord"])
    rejected: list[RejectedLicense] = field(default_factory=list[RejectedLicense])
    pages_fetched: int = 0

    @property
    def total(self) -> int:
        return len(self.records) + len(self.rejected)


@dataclass(frozen=True, slots=True)
class PushOutcome:
    record: InternalLicenseRecord
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class SourceHealth:
    healthy: bool
    checked_at: datetime
    error: str | None = None


@runtime_checkable
class ExternalLicenseSource(Protocol):
    """Paginated read access plus (optional) write-back to the license API."""

    def fetch_all_pages(self) -> ExternalLicenseFetchResult:
        """Return every record; raise ``SourceUnavailable`` once retries are exhausted."""
        ...

    def fetch_one(self, app_id: str) -> ExternalLicenseRecord | None:
        """Return the license with this appId, ``None`` if the source does not know it.

        Raises ``SourceUnavailable`` when the source cannot be read and
        ``RecordSyncError`` when the record it returns is unusable.
        """
        ...

    def push_updates(self, records: Sequence[InternalLicenseRecord]) -> list[PushOutcome]:
        """Push internal values back out, one outcome per record, in input order."""
        ...

    def check_health(self) -> SourceHealth: ...


__all__ = [
    "ExternalLicenseFetchResult",
    "ExternalLicenseSource",
    "PushOutcome",
    "RejectedLicense",
    "SourceHealth",
]
