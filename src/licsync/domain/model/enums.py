"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class LicenseType(StrEnum):
    DEMO = "demo"
    PRODUCT = "product"


class LicenseStatus(StrEnum):
    ACTIVE = "active"
    CANCEL = "cancel"
    PENDING = "pending"

    @classmethod
    def from_external(cls, status: int | None) -> LicenseStatus | None:
        """Map the external 1/0 activity flag onto an internal status."""

        if status is None:
            return None
        return cls.ACTIVE if status == 1 else cls.CANCEL


class ExternalSyncStatus(StrEnum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class SyncOutcome(StrEnum):
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    SOURCE_UNAVAILABLE = "source_unavailable"
