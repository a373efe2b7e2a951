"""JSON request/response models for the ``/sync`` endpoints."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from licsync.config import ConfigurationError
from licsync.config.sync import MAX_SYNC_BATCH_SIZE
from licsync.domain.model import SyncOutcome, SyncRun  # noqa: TC001
from licsync.domain.reconciliation import (
    LicenseSyncError,
    MergeAction,
    PendingSyncResult,
    RecordFailure,
    SingleSyncResult,
    SourceUnavailable,
    SyncAlreadyRunning,
    SyncOptions,
    SyncResult,
    SyncStatistics,
    SyncStatus,
    SyncTimedOut,
)
from licsync.domain.reconciliation.engine import DEFAULT_PENDING_LIMIT

MAX_PENDING_LIMIT = 1000


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SyncRequestBody(CamelModel):
    """Body of ``POST /sync``; every field is optional."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    force: bool = False
    batch_size: int | None = Field(default=None, ge=1, le=MAX_SYNC_BATCH_SIZE)
    dry_run: bool = False
    bidirectional: bool | None = None
    sync_to_internal_only: bool = False

    def to_options(self) -> SyncOptions:
        return SyncOptions(
            force=self.force,
            batch_size=self.batch_size,
            dry_run=self.dry_run,
            bidirectional=self.bidirectional,
            sync_to_internal_only=self.sync_to_internal_only,
        )


class KeyedCountPayload(CamelModel):
    count: int
    keys: list[str]

    @classmethod
    def of(cls, keys: tuple[str, ...]) -> KeyedCountPayload:
        return cls(count=len(keys), keys=list(keys))


class FailurePayload(CamelModel):
    reference: str
    error: str
    kind: str

    @classmethod
    def from_failure(cls, failure: RecordFailure) -> FailurePayload:
        return cls(reference=failure.reference, error=failure.error, kind=str(failure.kind))


class FailureListPayload(CamelModel):
    count: int
    errors: list[FailurePayload]

    @classmethod
    def of(cls, failures: tuple[RecordFailure, ...]) -> FailureListPayload:
        return cls(
            count=len(failures), errors=[FailurePayload.from_failure(item) for item in failures]
        )


class SyncResultPayload(CamelModel):
    started_at: datetime
    finished_at: datetime
    duration_seconds: float
    outcome: SyncOutcome
    total_external_fetched: int
    created: KeyedCountPayload
    updated: KeyedCountPayload
    failed: FailureListPayload
    skipped: int
    bidirectional: bool
    dry_run: bool
    sync_to_internal_only: bool
    batch_size: int
    pushed: KeyedCountPayload
    push_failed: FailureListPayload
    flagged_for_review: KeyedCountPayload
    not_attempted: int
    error: str | None = None

    @classmethod
    def from_result(cls, result: SyncResult) -> SyncResultPayload:
        return cls(
            started_at=result.started_at,
            finished_at=result.finished_at,
            duration_seconds=result.duration_seconds,
            outcome=result.outcome,
            total_external_fetched=result.total_external_fetched,
            created=KeyedCountPayload.of(result.created),
            updated=KeyedCountPayload.of(result.updated),
            failed=FailureListPayload.of(result.failed),
            skipped=result.skipped,
            bidirectional=result.bidirectional,
            dry_run=result.dry_run,
            sync_to_internal_only=result.sync_to_internal_only,
            batch_size=result.batch_size,
            pushed=KeyedCountPayload.of(result.pushed),
            push_failed=FailureListPayload.of(result.push_failed),
            flagged_for_review=KeyedCountPayload.of(result.flagged_for_review),
            not_attempted=result.not_attempted,
            error=result.error,
        )


class SyncStatusPayload(CamelModel):
    in_progress: bool
    current_started_at: datetime | None = None
    last_result: SyncResultPayload | None = None

    @classmethod
    def from_status(cls, status: SyncStatus) -> SyncStatusPayload:
        last = status.last_result
        return cls(
            in_progress=status.in_progress,
            current_started_at=status.current_started_at,
            last_result=SyncResultPayload.from_result(last) if last is not None else None,
        )


class SyncRunPayload(CamelModel):
    id: int | None
    started_at: datetime
    finished_at: datetime
    outcome: SyncOutcome
    dry_run: bool
    bidirectional: bool
    total_external_fetched: int
    created: int
    updated: int
    failed: int
    skipped: int
    pushed: int
    push_failed: int
    flagged_for_review: int
    not_attempted: int
    error: str | None = None

    @classmethod
    def from_run(cls, run: SyncRun) -> SyncRunPayload:
        return cls(
            id=run.id,
            started_at=run.started_at,
            finished_at=run.finished_at,
            outcome=run.outcome,
            dry_run=run.dry_run,
            bidirectional=run.bidirectional,
            total_external_fetched=run.total_external_fetched,
            created=run.created,
            updated=run.updated,
            failed=run.failed,
            skipped=run.skipped,
            pushed=run.pushed,
            push_failed=run.push_failed,
            flagged_for_review=run.flagged_for_review,
            not_attempted=run.not_attempted,
            error=run.error,
        )


class SingleSyncPayload(CamelModel):
    reference: str
    success: bool
    action: MergeAction | None = None
    license_key: str | None = None
    needs_review: bool = False
    error: str | None = None

    @classmethod
    def from_result(cls, result: SingleSyncResult) -> SingleSyncPayload:
        return cls(
            reference=result.reference,
            success=result.succeeded,
            action=result.action,
            license_key=result.license_key,
            needs_review=result.needs_review,
            error=result.error,
        )


class PendingSyncRequestBody(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    limit: int = Field(default=DEFAULT_PENDING_LIMIT, ge=1, le=MAX_PENDING_LIMIT)


class PendingSyncPayload(CamelModel):
    started_at: datetime
    finished_at: datetime
    processed: int
    synced: int
    failed: int
    results: list[SingleSyncPayload]

    @classmethod
    def from_result(cls, result: PendingSyncResult) -> PendingSyncPayload:
        return cls(
            started_at=result.started_at,
            finished_at=result.finished_at,
            processed=result.processed,
            synced=len(result.synced),
            failed=len(result.failed),
            results=[SingleSyncPayload.from_result(item) for item in result.results],
        )


class SourceHealthPayload(CamelModel):
    healthy: bool
    checked_at: datetime
    error: str | None = None


class SyncStatisticsPayload(CamelModel):
    total: int
    synced: int
    failed: int
    pending: int
    success_rate: int
    last_run_at: datetime | None = None
    source: SourceHealthPayload | None = None

    @classmethod
    def from_statistics(cls, stats: SyncStatistics) -> SyncStatisticsPayload:
        health = stats.source
        return cls(
            total=stats.total,
            synced=stats.synced,
            failed=stats.failed,
            pending=stats.pending,
            success_rate=stats.success_rate,
            last_run_at=stats.last_run_at,
            source=(
                SourceHealthPayload(
                    healthy=health.healthy, checked_at=health.checked_at, error=health.error
                )
                if health is not None
                else None
            ),
        )


def error_response(
    exc: LicenseSyncError | ConfigurationError,
) -> tuple[int, dict[str, Any]]:
    """Map a fatal sync error to an HTTP status code and JSON body."""

    if isinstance(exc, ConfigurationError):
        return 500, {"error": "configuration_error", "message": str(exc)}
    if isinstance(exc, SyncAlreadyRunning):
        return 409, {"error": "sync_already_running", "message": str(exc)}
    if isinstance(exc, SourceUnavailable):
        return 503, {"error": "source_unavailable", "message": str(exc)}
    if isinstance(exc, SyncTimedOut):
        return 504, {
            "error": "sync_timed_out",
            "message": str(exc),
            "result": SyncResultPayload.from_result(exc.result).to_json_dict(),
        }
    return 500, {"error": "sync_failed", "message": str(exc)}
