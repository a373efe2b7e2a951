"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from licsync.adapters.license_api import LicenseApiClient
from licsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyLicenseUnitOfWork,
    is_started,
    startup,
)
from licsync.adapters.status import InMemorySyncStatusTracker
from licsync.config import get_license_api_config, get_sync_config
from licsync.domain.ports.unit_of_work import LicenseUnitOfWork
from licsync.domain.reconciliation import (
    FieldMergePolicy,
    ReconciliationOrchestrator,
    SyncOptions,
)
from licsync.domain.reconciliation.engine import DEFAULT_PENDING_LIMIT

if TYPE_CHECKING:
    from licsync.config import SyncConfig
    from licsync.domain.model import SyncRun
    from licsync.domain.ports.fetching import ExternalLicenseSource
    from licsync.domain.ports.status import SyncStatusTracker
    from licsync.domain.reconciliation import (
        PendingSyncResult,
        SingleSyncResult,
        SyncResult,
        SyncStatistics,
        SyncStatus,
    )

UnitOfWorkFactory = Callable[[], LicenseUnitOfWork]


log = getLogger(__name__)

# One tracker per process; the REST layer and the scheduler share it.
_DEFAULT_TRACKER = InMemorySyncStatusTracker()


def default_tracker() -> InMemorySyncStatusTracker:
    return _DEFAULT_TRACKER


def _default_unit_of_work_factory() -> UnitOfWorkFactory:
    if not is_started():
        startup()
    return SqlAlchemyLicenseUnitOfWork


def _resolve_source(
    source: ExternalLicenseSource | None,
    options: SyncOptions,
    config: SyncConfig,
) -> ExternalLicenseSource | None:
    if source is not None:
        return source
    bidirectional = config.bidirectional if options.bidirectional is None else options.bidirectional
    if options.sync_to_internal_only and not bidirectional:
        return None
    return LicenseApiClient(config=get_license_api_config())


def build_orchestrator(
    options: SyncOptions,
    *,
    source: ExternalLicenseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    tracker: SyncStatusTracker | None = None,
    sync_config: SyncConfig | None = None,
) -> ReconciliationOrchestrator:
    config = sync_config or get_sync_config()
    return ReconciliationOrchestrator(
        source=_resolve_source(source, options, config),
        unit_of_work_factory=unit_of_work_factory or _default_unit_of_work_factory(),
        tracker=tracker or _DEFAULT_TRACKER,
        policy=FieldMergePolicy(max_key_attempts=config.max_key_attempts),
        batch_size=config.batch_size,
        time_budget_seconds=config.time_budget_seconds,
        bidirectional=config.bidirectional,
    )


def run_license_sync(
    options: SyncOptions | None = None,
    *,
    source: ExternalLicenseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    tracker: SyncStatusTracker | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncResult:
    """Reconcile the license API into the internal license table."""

    effective_options = options or SyncOptions()
    orchestrator = build_orchestrator(
        effective_options,
        source=source,
        unit_of_work_factory=unit_of_work_factory,
        tracker=tracker,
        sync_config=sync_config,
    )
    return orchestrator.run_sync(effective_options)


def get_sync_status(*, tracker: SyncStatusTracker | None = None) -> SyncStatus:
    return (tracker or _DEFAULT_TRACKER).get_status()


def list_sync_runs(
    *,
    limit: int = 20,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[SyncRun]:
    """Most recent audit entries, newest first."""

    factory = unit_of_work_factory or _default_unit_of_work_factory()
    with factory() as uow:
        return uow.repositories.sync_runs.recent(limit)


def sync_single_license(
    app_id: str,
    *,
    source: ExternalLicenseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    tracker: SyncStatusTracker | None = None,
    sync_config: SyncConfig | None = None,
) -> SingleSyncResult:
    """Pull one license from the API by appId and merge it."""

    orchestrator = build_orchestrator(
        SyncOptions(),
        source=source,
        unit_of_work_factory=unit_of_work_factory,
        tracker=tracker,
        sync_config=sync_config,
    )
    return orchestrator.sync_single(app_id)


def sync_pending_licenses(
    limit: int = DEFAULT_PENDING_LIMIT,
    *,
    source: ExternalLicenseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    tracker: SyncStatusTracker | None = None,
    sync_config: SyncConfig | None = None,
) -> PendingSyncResult:
    orchestrator = build_orchestrator(
        SyncOptions(),
        source=source,
        unit_of_work_factory=unit_of_work_factory,
        tracker=tracker,
        sync_config=sync_config,
    )
    return orchestrator.sync_pending(limit)


def get_sync_statistics(
    *,
    include_source: bool = True,
    source: ExternalLicenseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncStatistics:
    """Sync status counts, plus a health check of the API unless ``include_source`` is off."""

    options = (
        SyncOptions()
        if include_source
        else SyncOptions(sync_to_internal_only=True, bidirectional=False)
    )
    orchestrator = build_orchestrator(
        options,
        source=source if include_source else None,
        unit_of_work_factory=unit_of_work_factory,
        sync_config=sync_config,
    )
    return orchestrator.sync_stats()
