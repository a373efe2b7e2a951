"""Framework-neutral handlers behind the ``/sync`` endpoints.

Each handler returns ``(status_code, json_body)`` so any web framework can mount it
with a two-line adapter.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from licsync.app import (
    get_sync_statistics,
    get_sync_status,
    run_license_sync,
    sync_pending_licenses,
    sync_single_license,
)
from licsync.config import ConfigurationError
from licsync.domain.reconciliation import LicenseSyncError
from licsync.ui.payloads import (
    PendingSyncPayload,
    PendingSyncRequestBody,
    SingleSyncPayload,
    SyncRequestBody,
    SyncResultPayload,
    SyncStatisticsPayload,
    SyncStatusPayload,
    error_response,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from licsync.app import UnitOfWorkFactory
    from licsync.config import SyncConfig
    from licsync.domain.ports.fetching import ExternalLicenseSource
    from licsync.domain.ports.status import SyncStatusTracker

log = getLogger(__name__)

type JsonResponse = tuple[int, dict[str, Any]]


def handle_sync_request(
    body: Mapping[str, Any] | None = None,
    *,
    source: ExternalLicenseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    tracker: SyncStatusTracker | None = None,
    sync_config: SyncConfig | None = None,
) -> JsonResponse:
    try:
        request = SyncRequestBody.model_validate(dict(body or {}))
    except ValidationError as exc:
        return _invalid_request(exc)

    try:
        result = run_license_sync(
            request.to_options(),
            source=source,
            unit_of_work_factory=unit_of_work_factory,
            tracker=tracker,
            sync_config=sync_config,
        )
    except (LicenseSyncError, ConfigurationError) as exc:
        log.warning("Sync request failed: %s", exc)
        return error_response(exc)
    return 200, SyncResultPayload.from_result(result).to_json_dict()


def handle_status_request(*, tracker: SyncStatusTracker | None = None) -> JsonResponse:
    status = get_sync_status(tracker=tracker)
    return 200, SyncStatusPayload.from_status(status).to_json_dict()


def _invalid_request(exc: ValidationError) -> JsonResponse:
    return 422, {
        "error": "invalid_request",
        "details": exc.errors(include_url=False, include_context=False),
    }


def handle_single_sync_request(
    app_id: str,
    *,
    source: ExternalLicenseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    tracker: SyncStatusTracker | None = None,
    sync_config: SyncConfig | None = None,
) -> JsonResponse:
    """``POST /sync/licenses/{appId}``; a record level failure answers 502."""

    if not app_id.strip():
        return 422, {"error": "invalid_request", "message": "appId must not be blank"}
    try:
        result = sync_single_license(
            app_id.strip(),
            source=source,
            unit_of_work_factory=unit_of_work_factory,
            tracker=tracker,
            sync_config=sync_config,
        )
    except (LicenseSyncError, ConfigurationError) as exc:
        log.warning("Single license sync request failed: %s", exc)
        return error_response(exc)
    payload = SingleSyncPayload.from_result(result).to_json_dict()
    if not result.succeeded:
        return 502, {"error": "license_sync_failed", "result": payload}
    return 200, payload


def handle_pending_sync_request(
    body: Mapping[str, Any] | None = None,
    *,
    source: ExternalLicenseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    tracker: SyncStatusTracker | None = None,
    sync_config: SyncConfig | None = None,
) -> JsonResponse:
    try:
        request = PendingSyncRequestBody.model_validate(dict(body or {}))
    except ValidationError as exc:
        return _invalid_request(exc)

    try:
        result = sync_pending_licenses(
            request.limit,
            source=source,
            unit_of_work_factory=unit_of_work_factory,
            tracker=tracker,
            sync_config=sync_config,
        )
    except (LicenseSyncError, ConfigurationError) as exc:
        log.warning("Pending license sync request failed: %s", exc)
        return error_response(exc)
    return 200, PendingSyncPayload.from_result(result).to_json_dict()


def handle_stats_request(
    *,
    include_source: bool = True,
    source: ExternalLicenseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    sync_config: SyncConfig | None = None,
) -> JsonResponse:
    try:
        stats = get_sync_statistics(
            include_source=include_source,
            source=source,
            unit_of_work_factory=unit_of_work_factory,
            sync_config=sync_config,
        )
    except ConfigurationError as exc:
        log.warning("Sync statistics request failed: %s", exc)
        return error_response(exc)
    return 200, SyncStatisticsPayload.from_statistics(stats).to_json_dict()
