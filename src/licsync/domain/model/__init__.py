"""Public domain model surface."""

from __future__ import annotations

from licsync.domain.model.audit import SyncRun
from licsync.domain.model.enums import ExternalSyncStatus, LicenseStatus, LicenseType, SyncOutcome
from licsync.domain.model.external import (
    MERCHANT_ID_SENTINELS,
    ExternalLicenseRecord,
    normalize_email,
    normalize_merchant_id,
)
from licsync.domain.model.license import DEFAULT_SEATS_TOTAL, DEFAULT_TERM, InternalLicenseRecord

__all__ = [
    "DEFAULT_SEATS_TOTAL",
    "DEFAULT_TERM",
    "MERCHANT_ID_SENTINELS",
    "ExternalLicenseRecord",
    "ExternalSyncStatus",
    "InternalLicenseRecord",
    "LicenseStatus",
    "LicenseType",
    "SyncOutcome",
    "SyncRun",
    "normalize_email",
    "normalize_merchant_id",
]
