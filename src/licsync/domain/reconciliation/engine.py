"""Reconciliation orchestrator: fetch, match, merge, write, optionally push back.

One call to ``run_sync`` walks the state machine

    idle -> fetching -> reconciling -> (writing | dry-run computing) -> [push] -> idle

Every batch is written in its own unit of work, so a crash leaves the store with the
batches flushed so far and nothing of the batch in flight.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from licsync.domain.model import ExternalSyncStatus, SyncOutcome, SyncRun
from licsync.domain.ports.fetching import ExternalLicenseFetchResult
from licsync.domain.reconciliation.contracts import (
    FailureKind,
    MergeAction,
    PendingSyncResult,
    RecordFailure,
    SingleSyncResult,
    SyncOptions,
    SyncResult,
    SyncStatistics,
)
from licsync.domain.reconciliation.errors import (
    LicenseSyncError,
    MergeFailed,
    RecordSyncError,
    SourceUnavailable,
    SyncTimedOut,
)
from licsync.domain.reconciliation.match import RecordMatcher
from licsync.domain.reconciliation.policy import FieldMergePolicy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from licsync.domain.model import ExternalLicenseRecord, InternalLicenseRecord
    from licsync.domain.ports.fetching import ExternalLicenseSource
    from licsync.domain.ports.persistence import LicenseRepository
    from licsync.domain.ports.status import SyncStatusTracker
    from licsync.domain.ports.unit_of_work import LicenseUnitOfWork
    from licsync.domain.reconciliation.contracts import MergePlan

    type UnitOfWorkFactory = Callable[[], LicenseUnitOfWork]

log = getLogger(__name__)

DEFAULT_BATCH_SIZE: Final[int] = 200
DEFAULT_TIME_BUDGET_SECONDS: Final[float] = 900.0
DEFAULT_PENDING_LIMIT: Final[int] = 100


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _chunked[T](items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class _RunLookup:
    """Store lookups overlaid with changes that are planned but not written yet.

    Keeps a second feed entry for the same license from creating a duplicate row
    before the first one is flushed (for dry runs: never flushed at all). Dry runs
    also keep a merged copy of every stored record they would update, so later
    entries are matched and merged against the values a real run would have written.
    """

    def __init__(self) -> None:
        self._store: LicenseRepository | None = None
        self._pending: list[InternalLicenseRecord] = []
        self._shadows: dict[int, InternalLicenseRecord] = {}

    def bind(self, store: LicenseRepository) -> None:
        self._store = store

    def add_pending(self, record: InternalLicenseRecord) -> None:
        self._pending.append(record)

    def is_pending(self, record: InternalLicenseRecord) -> bool:
        return any(candidate is record for candidate in self._pending)

    def shadow(self, plan: MergePlan) -> None:
        """Remember ``plan`` applied to a copy, leaving the stored record untouched."""

        record = plan.record
        if record.id is None:
            raise ValueError("Only stored licenses can be shadowed")
        self._shadows[record.id] = replace(record, **plan.changes)

    def discard_pending(self) -> None:
        self._pending.clear()
        self._shadows.clear()

    @property
    def store(self) -> LicenseRepository:
        if self._store is None:
            raise RuntimeError("Run lookup used outside of a unit of work")
        return self._store

    def find_by_external_app_id(self, app_id: str) -> InternalLicenseRecord | None:
        return self._find(
            lambda record: record.external_app_id == app_id,
            self.store.find_by_external_app_id(app_id),
        )

    def find_by_external_email(self, email: str) -> InternalLicenseRecord | None:
        return self._find(
            lambda record: record.external_email == email,
            self.store.find_by_external_email(email),
        )

    def find_by_external_count_id(self, count_id: int) -> InternalLicenseRecord | None:
        return self._find(
            lambda record: record.external_count_id == count_id,
            self.store.find_by_external_count_id(count_id),
        )

    def key_exists(self, key: str) -> bool:
        if any(record.key == key for record in self._pending):
            return True
        return self.store.key_exists(key)

    def _find(
        self,
        matches: Callable[[InternalLicenseRecord], bool],
        stored: InternalLicenseRecord | None,
    ) -> InternalLicenseRecord | None:
        for record in self._pending:
            if matches(record):
                return record
        for record in self._shadows.values():
            if matches(record):
                return record
        # the stored row no longer carries this key once the planned update lands
        if stored is not None and stored.id in self._shadows:
            return None
        return stored


@dataclass(slots=True)
class _Tally:
    created: list[str] = field(default_factory=list[str])
    updated: list[str] = field(default_factory=list[str])
    failed: list[RecordFailure] = field(default_factory=list[RecordFailure])
    skipped: int = 0
    flagged: list[str] = field(default_factory=list[str])
    pushed: list[str] = field(default_factory=list[str])
    push_failed: list[RecordFailure] = field(default_factory=list[RecordFailure])

    def absorb(self, other: _Tally) -> None:
        self.created.extend(other.created)
        self.updated.extend(other.updated)
        self.failed.extend(other.failed)
        self.skipped += other.skipped
        self.flagged.extend(other.flagged)


@dataclass(slots=True)
class _Run:
    options: SyncOptions
    batch_size: int
    bidirectional: bool
    started_at: datetime
    deadline: float
    total_external_fetched: int = 0
    tally: _Tally = field(default_factory=_Tally)

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run

    def finish(
        self,
        finished_at: datetime,
        *,
        outcome: SyncOutcome = SyncOutcome.SUCCEEDED,
        not_attempted: int = 0,
        error: str | None = None,
    ) -> SyncResult:
        return SyncResult(
            started_at=self.started_at,
            finished_at=finished_at,
            total_external_fetched=self.total_external_fetched,
            created=tuple(self.tally.created),
            updated=tuple(self.tally.updated),
            failed=tuple(self.tally.failed),
            skipped=self.tally.skipped,
            bidirectional=self.bidirectional,
            dry_run=self.dry_run,
            sync_to_internal_only=self.options.sync_to_internal_only,
            batch_size=self.batch_size,
            pushed=tuple(self.tally.pushed),
            push_failed=tuple(self.tally.push_failed),
            flagged_for_review=tuple(self.tally.flagged),
            not_attempted=not_attempted,
            outcome=outcome,
            error=error,
        )


def sync_run_from_result(result: SyncResult) -> SyncRun:
    """Flatten a result into the audit row stored per run."""

    failures = [
        {"reference": failure.reference, "error": failure.error, "kind": str(failure.kind)}
        for failure in (*result.failed, *result.push_failed)
    ]
    return SyncRun(
        started_at=result.started_at,
        finished_at=result.finished_at,
        outcome=result.outcome,
        dry_run=result.dry_run,
        bidirectional=result.bidirectional,
        sync_to_internal_only=result.sync_to_internal_only,
        total_external_fetched=result.total_external_fetched,
        created=result.created_count,
        updated=result.updated_count,
        failed=result.failed_count,
        skipped=result.skipped,
        pushed=len(result.pushed),
        push_failed=len(result.push_failed),
        flagged_for_review=len(result.flagged_for_review),
        not_attempted=result.not_attempted,
        error=result.error,
        failures=failures,
    )


class ReconciliationOrchestrator:
    def __init__(
        self,
        *,
        source: ExternalLicenseSource | None,
        unit_of_work_factory: UnitOfWorkFactory,
        tracker: SyncStatusTracker,
        matcher: RecordMatcher | None = None,
        policy: FieldMergePolicy | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        time_budget_seconds: float = DEFAULT_TIME_BUDGET_SECONDS,
        bidirectional: bool = False,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._uow_factory = unit_of_work_factory
        self._tracker = tracker
        self._matcher = matcher or RecordMatcher()
        self._policy = policy or FieldMergePolicy()
        self._batch_size = batch_size
        self._time_budget_seconds = time_budget_seconds
        self._bidirectional = bidirectional
        self._clock = clock
        self._monotonic = monotonic

    def run_sync(self, options: SyncOptions | None = None) -> SyncResult:
        """Run one reconciliation pass.

        Raises ``SyncAlreadyRunning`` (nothing changed), ``SourceUnavailable`` (nothing
        written) or ``SyncTimedOut`` (flushed batches stay). Per-record problems never
        raise; they end up in ``SyncResult.failed``.
        """

        options = options or SyncOptions()
        batch_size = self._resolve_batch_size(options)
        bidirectional = (
            self._bidirectional if options.bidirectional is None else options.bidirectional
        )

        with self._tracker.begin(force=options.force) as token:
            run = _Run(
                options=options,
                batch_size=batch_size,
                bidirectional=bidirectional,
                started_at=self._clock(),
                deadline=self._monotonic() + self._time_budget_seconds,
            )
            try:
                result = self._execute(run)
            except SyncTimedOut as exc:
                token.result = exc.result
                self._audit(exc.result)
                raise
            except SourceUnavailable as exc:
                log.error("License sync aborted, source unavailable: %s", exc)
                failed_result = run.finish(
                    self._clock(), outcome=SyncOutcome.SOURCE_UNAVAILABLE, error=str(exc)
                )
                token.result = failed_result
                self._audit(failed_result)
                raise
            token.result = result
            self._audit(result)
            return result

    def sync_single(self, app_id: str) -> SingleSyncResult:
        """Re-fetch one license by appId and merge it straight into the store.

        Raises ``SyncAlreadyRunning`` while another run holds the slot and
        ``SourceUnavailable`` when the source cannot be reached. Problems with the
        record itself are reported in the returned result.
        """

        source = self._require_source()
        with self._tracker.begin():
            return self._sync_one(source, app_id)

    def sync_pending(self, limit: int = DEFAULT_PENDING_LIMIT) -> PendingSyncResult:
        """Re-sync up to ``limit`` pending or failed licenses one by one."""

        if limit < 1:
            raise ValueError(f"Limit must be positive, got {limit}")
        source = self._require_source()
        with self._tracker.begin():
            started_at = self._clock()
            with self._uow_factory() as uow:
                candidates = uow.repositories.licenses.find_needing_sync(limit)
            log.info("Re-syncing %s pending or failed licenses", len(candidates))
            results = [
                self._sync_one(source, record.external_app_id)
                for record in candidates
                if record.external_app_id
            ]
            finished_at = self._clock()
        outcome = PendingSyncResult(
            started_at=started_at, finished_at=finished_at, results=tuple(results)
        )
        log.info(
            "Re-synced %s licenses: %s synced, %s failed",
            outcome.processed,
            len(outcome.synced),
            len(outcome.failed),
        )
        return outcome

    def sync_stats(self) -> SyncStatistics:
        with self._uow_factory() as uow:
            counts = uow.repositories.licenses.count_by_sync_status()
            recent = uow.repositories.sync_runs.recent(1)
        health = self._source.check_health() if self._source is not None else None
        return SyncStatistics(
            total=sum(counts.values()),
            synced=counts.get(ExternalSyncStatus.SYNCED, 0),
            failed=counts.get(ExternalSyncStatus.FAILED, 0),
            pending=counts.get(ExternalSyncStatus.PENDING, 0),
            last_run_at=recent[0].finished_at if recent else None,
            source=health,
        )

    def _sync_one(self, source: ExternalLicenseSource, app_id: str) -> SingleSyncResult:
        reference = f"appId={app_id}"
        now = self._clock()
        try:
            external = source.fetch_one(app_id)
            if external is None:
                raise RecordSyncError(f"License {app_id} not found in the external source")
            with self._uow_factory() as uow:
                licenses = uow.repositories.licenses
                match = self._matcher.match(external, licenses)
                plan = self._policy.plan(
                    external, match, now=now, key_exists=licenses.key_exists
                )
                if plan.action is MergeAction.CREATE:
                    licenses.bulk_insert([plan.record])
                elif plan.action is MergeAction.UPDATE:
                    plan.apply()
                    licenses.bulk_update([plan.record])
                uow.commit()
        except SourceUnavailable:
            raise
        except LicenseSyncError as exc:
            log.warning("Sync of license %s failed: %s", app_id, exc)
            self._flag_failed(app_id, str(exc))
            return SingleSyncResult(reference=reference, error=str(exc))
        except Exception as exc:
            log.exception("Sync of license %s failed", app_id)
            message = f"Unexpected error: {exc}"
            self._flag_failed(app_id, message)
            return SingleSyncResult(reference=reference, error=message)

        log.info("Synced license %s (%s)", app_id, plan.action)
        return SingleSyncResult(
            reference=reference,
            action=plan.action,
            license_key=plan.record.key,
            needs_review=plan.needs_review,
        )

    def _flag_failed(self, app_id: str, message: str) -> None:
        try:
            with self._uow_factory() as uow:
                licenses = uow.repositories.licenses
                record = licenses.find_by_external_app_id(app_id)
                if record is None:
                    return
                record.mark_sync_failed(message)
                licenses.bulk_update([record])
                uow.commit()
        except Exception:
            log.exception("Could not flag license %s as failed", app_id)

    def _resolve_batch_size(self, options: SyncOptions) -> int:
        batch_size = options.batch_size if options.batch_size is not None else self._batch_size
        if batch_size < 1:
            raise ValueError(f"Batch size must be positive, got {batch_size}")
        return batch_size

    def _require_source(self) -> ExternalLicenseSource:
        if self._source is None:
            raise SourceUnavailable("No external license source configured")
        return self._source

    def _execute(self, run: _Run) -> SyncResult:
        log.info(
            "Starting license sync: batch_size=%s, dry_run=%s, bidirectional=%s, "
            "internal_only=%s",
            run.batch_size,
            run.dry_run,
            run.bidirectional,
            run.options.sync_to_internal_only,
        )
        fetched = self._load_external(run)
        run.total_external_fetched = fetched.total
        run.tally.failed.extend(
            RecordFailure(rejected.reference, rejected.error, FailureKind.INVALID)
            for rejected in fetched.rejected
        )

        lookup = _RunLookup()
        batches = list(_chunked(fetched.records, run.batch_size))
        for index, batch in enumerate(batches):
            if self._monotonic() > run.deadline:
                remaining = sum(len(pending) for pending in batches[index:])
                message = (
                    f"Sync exceeded its {self._time_budget_seconds:g}s budget after "
                    f"{index} of {len(batches)} batches"
                )
                log.error("%s; %s records not attempted", message, remaining)
                result = run.finish(
                    self._clock(),
                    outcome=SyncOutcome.TIMED_OUT,
                    not_attempted=remaining,
                    error=message,
                )
                raise SyncTimedOut(message, result=result)
            self._process_batch(run, batch, lookup)
            log.info("Processed batch %s/%s (%s records)", index + 1, len(batches), len(batch))

        if run.bidirectional and not run.dry_run:
            self._push_back(run)

        result = run.finish(self._clock())
        log.info(
            "Finished license sync: fetched=%s, created=%s, updated=%s, failed=%s, "
            "skipped=%s, pushed=%s, flagged=%s",
            result.total_external_fetched,
            result.created_count,
            result.updated_count,
            result.failed_count,
            result.skipped,
            len(result.pushed),
            len(result.flagged_for_review),
        )
        return result

    def _load_external(self, run: _Run) -> ExternalLicenseFetchResult:
        if run.options.sync_to_internal_only:
            with self._uow_factory() as uow:
                records = uow.repositories.mirror.load()
            log.info("Loaded %s records from the external license mirror", len(records))
            return ExternalLicenseFetchResult(records=records)

        fetched = self._require_source().fetch_all_pages()
        log.info(
            "Fetched %s external licenses (%s rejected) in %s pages",
            len(fetched.records),
            len(fetched.rejected),
            fetched.pages_fetched,
        )
        if not run.dry_run:
            with self._uow_factory() as uow:
                uow.repositories.mirror.replace(fetched.records, fetched_at=self._clock())
                uow.commit()
        return fetched

    def _process_batch(
        self,
        run: _Run,
        batch: Sequence[ExternalLicenseRecord],
        lookup: _RunLookup,
    ) -> None:
        tally = _Tally()
        matched_ids: list[int] = []
        now = self._clock()
        try:
            with self._uow_factory() as uow:
                licenses = uow.repositories.licenses
                lookup.bind(licenses)
                creates: list[InternalLicenseRecord] = []
                updates: list[InternalLicenseRecord] = []
                for external in batch:
                    if not external.has_correlation_key:
                        tally.failed.append(
                            RecordFailure(
                                external.reference,
                                "Record carries no appId, email or countId",
                                FailureKind.INVALID,
                            )
                        )
                        continue
                    match = self._matcher.match(external, lookup)
                    if match is not None and match.record.id is not None:
                        matched_ids.append(match.record.id)
                    try:
                        plan = self._policy.plan(
                            external, match, now=now, key_exists=lookup.key_exists
                        )
                    except MergeFailed as exc:
                        log.warning("Merge failed for %s: %s", external.reference, exc)
                        tally.failed.append(
                            RecordFailure(external.reference, str(exc), FailureKind.MERGE)
                        )
                        continue
                    self._stage(plan, run, lookup, creates, updates, tally)

                if run.dry_run:
                    uow.rollback()
                else:
                    licenses.bulk_insert(creates)
                    licenses.bulk_update(updates)
                    uow.commit()
        except Exception as exc:
            log.exception("Batch of %s records failed and was rolled back", len(batch))
            lookup.discard_pending()
            message = f"Batch write failed: {exc}"
            run.tally.failed.extend(
                RecordFailure(external.reference, message, FailureKind.BATCH)
                for external in batch
            )
            if not run.dry_run:
                self._mark_failed(matched_ids, message)
            return

        if not run.dry_run:
            lookup.discard_pending()
        run.tally.absorb(tally)

    @staticmethod
    def _stage(
        plan: MergePlan,
        run: _Run,
        lookup: _RunLookup,
        creates: list[InternalLicenseRecord],
        updates: list[InternalLicenseRecord],
        tally: _Tally,
    ) -> None:
        record = plan.record
        if plan.needs_review:
            tally.flagged.append(record.key)

        if plan.action is MergeAction.CREATE:
            lookup.add_pending(record)
            if not run.dry_run:
                creates.append(record)
            tally.created.append(record.key)
        elif plan.action is MergeAction.UPDATE:
            pending = lookup.is_pending(record)
            if pending or not run.dry_run:
                plan.apply()
            else:
                lookup.shadow(plan)
            if not pending and not run.dry_run:
                updates.append(record)
            tally.updated.append(record.key)
        else:
            tally.skipped += 1

    def _mark_failed(self, license_ids: Sequence[int], message: str) -> None:
        if not license_ids:
            return
        try:
            with self._uow_factory() as uow:
                licenses = uow.repositories.licenses
                records: list[InternalLicenseRecord] = []
                for license_id in license_ids:
                    record = licenses.get(license_id)
                    if record is not None:
                        record.mark_sync_failed(message)
                        records.append(record)
                licenses.bulk_update(records)
                uow.commit()
        except Exception:
            log.exception("Could not flag %s licenses as failed", len(license_ids))

    def _push_back(self, run: _Run) -> None:
        source = self._require_source()
        with self._uow_factory() as uow:
            candidates = uow.repositories.licenses.find_modified_since_external_sync()
        if not candidates:
            log.info("No internally modified licenses to push")
            return

        log.info("Pushing %s internally modified licenses", len(candidates))
        try:
            outcomes = source.push_updates(candidates)
        except Exception as exc:
            log.exception("Pushing %s licenses failed", len(candidates))
            run.tally.push_failed.extend(
                RecordFailure(f"key={record.key}", f"Push failed: {exc}", FailureKind.PUSH)
                for record in candidates
            )
            return

        pushed_ids: list[int] = []
        for outcome in outcomes:
            record = outcome.record
            if outcome.error is None:
                if record.id is not None:
                    pushed_ids.append(record.id)
                run.tally.pushed.append(record.key)
            else:
                log.warning("Push failed for license %s: %s", record.key, outcome.error)
                run.tally.push_failed.append(
                    RecordFailure(f"key={record.key}", outcome.error, FailureKind.PUSH)
                )
        if not pushed_ids:
            return
        try:
            self._mark_synced(pushed_ids)
        except Exception:
            # pushes are idempotent PUTs, the next run sends these again
            log.exception("Could not record %s pushed licenses as synced", len(pushed_ids))

    def _mark_synced(self, license_ids: Sequence[int]) -> None:
        now = self._clock()
        with self._uow_factory() as uow:
            licenses = uow.repositories.licenses
            records: list[InternalLicenseRecord] = []
            for license_id in license_ids:
                record = licenses.get(license_id)
                if record is not None:
                    record.mark_synced(now)
                    records.append(record)
            licenses.bulk_update(records)
            uow.commit()

    def _audit(self, result: SyncResult) -> None:
        if result.dry_run:
            return
        try:
            with self._uow_factory() as uow:
                uow.repositories.sync_runs.add(sync_run_from_result(result))
                uow.commit()
        except Exception:
            log.exception("Could not store the sync run audit entry")
