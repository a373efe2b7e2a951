"""Value objects passed between matcher, merge policy and orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from licsync.domain.model import SyncOutcome

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from licsync.domain.model import InternalLicenseRecord
    from licsync.domain.ports.fetching import SourceHealth


class MatchKey(StrEnum):
    APP_ID = "app_id"
    EMAIL = "email"
    COUNT_ID = "count_id"


class MatchConfidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


CONFIDENCE_BY_KEY: dict[MatchKey, MatchConfidence] = {
    MatchKey.APP_ID: MatchConfidence.HIGH,
    MatchKey.EMAIL: MatchConfidence.MEDIUM,
    MatchKey.COUNT_ID: MatchConfidence.LOW,
}


@dataclass(frozen=True, slots=True)
class MatchResult:
    record: InternalLicenseRecord
    key: MatchKey

    @property
    def confidence(self) -> MatchConfidence:
        return CONFIDENCE_BY_KEY[self.key]


class MergeAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    NOOP = "noop"


@dataclass(frozen=True, slots=True)
class MergePlan:
    """What the merge policy decided for one external record.

    For ``UPDATE`` plans ``changes`` holds the new values, bookkeeping included; the
    record itself is untouched until ``apply`` is called. ``CREATE`` plans carry a
    freshly built, not yet persisted record.
    """

    action: MergeAction
    record: InternalLicenseRecord
    changes: Mapping[str, object] = field(default_factory=dict[str, object])
    match: MatchResult | None = None
    needs_review: bool = False

    def apply(self) -> None:
        for name, value in self.changes.items():
            setattr(self.record, name, value)


@dataclass(frozen=True, slots=True)
class SyncOptions:
    """Caller supplied knobs; ``None`` means "use the configured default"."""

    force: bool = False
    batch_size: int | None = None
    dry_run: bool = False
    bidirectional: bool | None = None
    sync_to_internal_only: bool = False


class FailureKind(StrEnum):
    INVALID = "invalid"
    MERGE = "merge"
    BATCH = "batch"
    PUSH = "push"


@dataclass(frozen=True, slots=True)
class RecordFailure:
    reference: str
    error: str
    kind: FailureKind = FailureKind.MERGE


@dataclass(frozen=True, slots=True)
class SyncResult:
    started_at: datetime
    finished_at: datetime
    total_external_fetched: int = 0
    created: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    failed: tuple[RecordFailure, ...] = ()
    skipped: int = 0
    bidirectional: bool = False
    dry_run: bool = False
    sync_to_internal_only: bool = False
    batch_size: int = 0
    pushed: tuple[str, ...] = ()
    push_failed: tuple[RecordFailure, ...] = ()
    flagged_for_review: tuple[str, ...] = ()
    not_attempted: int = 0
    outcome: SyncOutcome = SyncOutcome.SUCCEEDED
    error: str | None = None

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def updated_count(self) -> int:
        return len(self.updated)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


@dataclass(frozen=True, slots=True)
class SyncStatus:
    in_progress: bool = False
    last_result: SyncResult | None = None
    current_started_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class SingleSyncResult:
    """Outcome of re-syncing one license; ``error`` is set when it failed."""

    reference: str
    action: MergeAction | None = None
    license_key: str | None = None
    needs_review: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class PendingSyncResult:
    started_at: datetime
    finished_at: datetime
    results: tuple[SingleSyncResult, ...] = ()

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def synced(self) -> tuple[SingleSyncResult, ...]:
        return tuple(result for result in self.results if result.succeeded)

    @property
    def failed(self) -> tuple[SingleSyncResult, ...]:
        return tuple(result for result in self.results if not result.succeeded)


@dataclass(frozen=True, slots=True)
class SyncStatistics:
    total: int
    synced: int
    failed: int
    pending: int
    last_run_at: datetime | None = None
    source: SourceHealth | None = None

    @property
    def success_rate(self) -> int:
        """Share of synced licenses as a whole percentage."""

        if self.total == 0:
            return 0
        return round(self.synced * 100 / self.total)
