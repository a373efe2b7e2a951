"""Pydantic models describing the third-party license API payloads."""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _number_to_text(value: object) -> object:
    # ids and zips arrive as JSON numbers from older API versions
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value)) if float(value).is_integer() else str(value)
    return _blank_to_none(value)


def _coerce_date(value: object) -> object:
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text or text.startswith("0000-00-00"):
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


class LicenseApiBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LicensePayload(LicenseApiBaseModel):
    count_id: int | None = Field(default=None, alias="countid")
    app_id: str | None = Field(default=None, alias="appid")
    license_type: str | None = None
    merchant_id: str | None = Field(
        default=None, validation_alias=AliasChoices("mid", "Mid", "merchant_id")
    )
    email: str | None = Field(
        default=None, validation_alias=AliasChoices("Email_license", "emailLicense", "email")
    )
    business_name: str | None = Field(default=None, alias="dba")
    zip: str | None = None
    activate_date: date | None = Field(default=None, alias="ActivateDate")
    coming_expired_date: date | None = Field(default=None, alias="Coming_expired")
    monthly_fee: Decimal | None = Field(default=None, alias="monthlyFee")
    sms_balance: int | None = Field(default=None, alias="smsBalance")
    note: str | None = Field(default=None, alias="Note")
    package: dict[str, bool] | None = Field(default=None, alias="Package")
    workspace_id: str | None = Field(default=None, alias="Sendbat_workspace")
    last_active: date | None = Field(default=None, alias="lastActive")
    status: int | None = None

    _normalize_text = field_validator(
        "app_id", "merchant_id", "zip", "workspace_id", mode="before"
    )(_number_to_text)
    _normalize_blank = field_validator(
        "count_id",
        "license_type",
        "email",
        "business_name",
        "note",
        "monthly_fee",
        "sms_balance",
        "status",
        mode="before",
    )(_blank_to_none)
    _normalize_dates = field_validator(
        "activate_date", "coming_expired_date", "last_active", mode="before"
    )(_coerce_date)

    @field_validator("package", mode="before")
    @classmethod
    def _parse_package(cls, value: object) -> object:
        if isinstance(value, str):
            text = value.strip()
            return json.loads(text) if text else None
        return value


class PageMeta(LicenseApiBaseModel):
    page: int | None = None
    limit: int | None = None
    total: int | None = None
    total_pages: int | None = Field(default=None, alias="totalPages")


class LicensePage(LicenseApiBaseModel):
    """One page of ``GET /api/v1/licenses``; items stay raw so one bad row cannot sink a page."""

    data: list[dict[str, Any]]
    meta: PageMeta | None = None


LicensePayloadInput = LicensePayload | dict[str, Any]
