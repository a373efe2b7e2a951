"""Snapshot of a license as reported by the third-party license API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from licsync.domain.model.enums import LicenseType

if TYPE_CHECKING:
    from datetime import date
    from decimal import Decimal

# Placeholder merchant ids the API emits for licenses without a real merchant.
MERCHANT_ID_SENTINELS: Final[frozenset[str]] = frozenset(
    {"DEMO", "NA", "N/A", "NONE", "NULL", "0", "-"}
)

_OPTIONAL_TEXT_FIELDS: Final[tuple[str, ...]] = (
    "app_id",
    "business_name",
    "zip",
    "note",
    "workspace_id",
)


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def normalize_email(value: str | None) -> str | None:
    cleaned = _clean_text(value)
    return cleaned.lower() if cleaned is not None else None


def normalize_merchant_id(value: str | None) -> str | None:
    cleaned = _clean_text(value)
    if cleaned is None or cleaned.upper() in MERCHANT_ID_SENTINELS:
        return None
    return cleaned


@dataclass(frozen=True, kw_only=True)
class ExternalLicenseRecord:
    """Read-only license snapshot, normalised at construction.

    Blank strings collapse to ``None``, placeholder merchant ids ("DEMO", "NA", ...)
    are treated as absent and e-mail addresses are compared lower-cased.
    """

    count_id: int | None = None
    app_id: str | None = None
    license_type: LicenseType = LicenseType.PRODUCT
    merchant_id: str | None = None
    email: str | None = None
    business_name: str | None = None
    zip: str | None = None
    activate_date: date | None = None
    coming_expired_date: date | None = None
    monthly_fee: Decimal | None = None
    sms_balance: int | None = None
    note: str | None = None
    package_flags: dict[str, bool] = field(default_factory=dict[str, bool])
    workspace_id: str | None = None
    last_active: date | None = None
    status: int | None = None

    def __post_init__(self) -> None:
        for name in _OPTIONAL_TEXT_FIELDS:
            object.__setattr__(self, name, _clean_text(getattr(self, name)))
        object.__setattr__(self, "email", normalize_email(self.email))
        object.__setattr__(self, "merchant_id", normalize_merchant_id(self.merchant_id))
        object.__setattr__(self, "package_flags", dict(self.package_flags))

    @property
    def has_correlation_key(self) -> bool:
        return bool(self.app_id or self.email or self.count_id is not None)

    @property
    def reference(self) -> str:
        """Human readable identifier used when attributing failures."""

        if self.app_id:
            return f"appId={self.app_id}"
        if self.email:
            return f"email={self.email}"
        if self.count_id is not None:
            return f"countId={self.count_id}"
        return "unidentified"
