"""Translate license API payloads into domain records and back."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from licsync.domain.model import ExternalLicenseRecord, LicenseStatus, LicenseType

from .schema import LicensePayload, LicensePayloadInput

if TYPE_CHECKING:
    from licsync.domain.model import InternalLicenseRecord

_CENTS = Decimal("0.01")


def _ensure_license_payload(payload: LicensePayloadInput) -> LicensePayload:
    if isinstance(payload, LicensePayload):
        return payload
    return LicensePayload.model_validate(payload)


def _license_type(value: str | None, app_id: str | None) -> LicenseType:
    if value is not None:
        is_demo = value.strip().lower() == LicenseType.DEMO
        return LicenseType.DEMO if is_demo else LicenseType.PRODUCT
    # only product licenses carry an appid
    return LicenseType.PRODUCT if app_id else LicenseType.DEMO


def _money(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def parse_external_license(payload: LicensePayloadInput) -> ExternalLicenseRecord:
    """Validate one raw API item and normalise it into an ``ExternalLicenseRecord``."""

    item = _ensure_license_payload(payload)
    return ExternalLicenseRecord(
        count_id=item.count_id,
        app_id=item.app_id,
        license_type=_license_type(item.license_type, item.app_id),
        merchant_id=item.merchant_id,
        email=item.email,
        business_name=item.business_name,
        zip=item.zip,
        activate_date=item.activate_date,
        coming_expired_date=item.coming_expired_date,
        monthly_fee=_money(item.monthly_fee),
        sms_balance=item.sms_balance,
        note=item.note,
        package_flags=dict(item.package or {}),
        workspace_id=item.workspace_id,
        last_active=item.last_active,
        status=item.status,
    )


def describe_raw_item(raw: dict[str, Any], *, page: int, index: int) -> str:
    """Best-effort reference for an item that failed validation."""

    for key, label in (("appid", "appId"), ("Email_license", "email"), ("countid", "countId")):
        value = raw.get(key)
        if value not in (None, ""):
            return f"{label}={value}"
    return f"page={page} item={index}"


def build_push_payload(record: InternalLicenseRecord) -> dict[str, object]:
    """Body of ``PUT /api/v1/licenses/...`` for a license changed on our side."""

    payload: dict[str, object] = {
        "dba": record.dba,
        "zip": record.zip,
        "status": 1 if record.status == LicenseStatus.ACTIVE else 0,
        "Note": record.notes,
    }
    if record.last_payment is not None:
        payload["monthlyFee"] = str(_money(record.last_payment))
    if record.sms_balance is not None:
        payload["smsBalance"] = record.sms_balance
    return payload
