"""The internal, authoritative license entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Final

from licsync.domain.model.enums import ExternalSyncStatus, LicenseStatus, LicenseType

if TYPE_CHECKING:
    from datetime import date, datetime

DEFAULT_TERM: Final[str] = "monthly"
DEFAULT_SEATS_TOTAL: Final[int] = 1


@dataclass(eq=False, kw_only=True)
class InternalLicenseRecord:
    id: int | None = None
    key: str

    # Business data owned by this system
    product: str = ""
    plan: str = ""
    term: str = DEFAULT_TERM
    notes: str = ""
    seats_total: int = DEFAULT_SEATS_TOTAL
    agents: int = 0
    agents_name: list[str] = field(default_factory=list[str])
    agents_cost: Decimal = field(default_factory=lambda: Decimal("0.00"))

    # Mirrored from the license API
    dba: str | None = None
    zip: str | None = None
    starts_at: date | None = None
    last_payment: Decimal | None = None
    sms_balance: int | None = None
    status: LicenseStatus = LicenseStatus.PENDING
    cancel_date: date | None = None
    last_active_at: date | None = None
    expires_at: date | None = None
    external_note: str | None = None
    merchant_id: str | None = None
    license_type: LicenseType | None = None
    package_flags: dict[str, bool] | None = None
    workspace_id: str | None = None

    # Correlation keys
    external_app_id: str | None = None
    external_email: str | None = None
    external_count_id: int | None = None

    external_sync_status: ExternalSyncStatus = ExternalSyncStatus.PENDING
    last_external_sync_at: datetime | None = None
    external_sync_error: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_correlation_key(self) -> bool:
        return bool(
            self.external_app_id or self.external_email or self.external_count_id is not None
        )

    @property
    def is_modified_since_external_sync(self) -> bool:
        if self.last_external_sync_at is None:
            return True
        return self.updated_at is not None and self.updated_at > self.last_external_sync_at

    def mark_synced(self, at: datetime) -> None:
        self.external_sync_status = ExternalSyncStatus.SYNCED
        self.external_sync_error = None
        self.last_external_sync_at = at
        self.updated_at = at

    def mark_sync_failed(self, message: str) -> None:
        # last_external_sync_at keeps naming the last good sync
        self.external_sync_status = ExternalSyncStatus.FAILED
        self.external_sync_error = message
