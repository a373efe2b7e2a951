"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import (
    ExternalLicenseFetchResult,
    ExternalLicenseSource,
    PushOutcome,
    RejectedLicense,
)
from .persistence import (
    ExternalLicenseMirrorRepository,
    LicenseLookup,
    LicenseRepository,
    SyncRunRepository,
)
from .status import SyncRunToken, SyncStatusTracker
from .unit_of_work import LicenseRepositories, LicenseUnitOfWork

__all__ = [
    "ExternalLicenseFetchResult",
    "ExternalLicenseMirrorRepository",
    "ExternalLicenseSource",
    "LicenseLookup",
    "LicenseRepositories",
    "LicenseRepository",
    "LicenseUnitOfWork",
    "PushOutcome",
    "RejectedLicense",
    "SyncRunRepository",
    "SyncRunToken",
    "SyncStatusTracker",
]
