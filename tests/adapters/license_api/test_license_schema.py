from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from licsync.adapters.license_api import LicensePage, LicensePayload


def test_payload_reads_api_field_names() -> None:
    payload = LicensePayload.model_validate(
        {
            "countid": "12",
            "appid": 9001,
            "Mid": "M-1",
            "Email_license": "Shop@Example.com",
            "dba": "Shop One",
            "zip": 10001,
            "ActivateDate": "2024-01-15",
            "Coming_expired": "01/15/2025",
            "monthlyFee": "49.99",
            "smsBalance": "120",
            "Note": "hello",
            "Package": {"sms": True},
            "Sendbat_workspace": "ws-1",
            "lastActive": "2025-02-20T10:11:12Z",
            "status": 1,
        }
    )

    assert payload.count_id == 12
    assert payload.app_id == "9001"
    assert payload.merchant_id == "M-1"
    assert payload.email == "Shop@Example.com"
    assert payload.zip == "10001"
    assert payload.activate_date == date(2024, 1, 15)
    assert payload.coming_expired_date == date(2025, 1, 15)
    assert payload.monthly_fee == Decimal("49.99")
    assert payload.sms_balance == 120
    assert payload.package == {"sms": True}
    assert payload.workspace_id == "ws-1"
    assert payload.last_active == date(2025, 2, 20)


def test_payload_accepts_alternate_email_keys() -> None:
    assert LicensePayload.model_validate({"emailLicense": "a@b.c"}).email == "a@b.c"
    assert LicensePayload.model_validate({"email": "a@b.c"}).email == "a@b.c"


def test_payload_treats_blanks_and_zero_dates_as_missing() -> None:
    payload = LicensePayload.model_validate(
        {"dba": "  ", "ActivateDate": "0000-00-00 00:00:00", "monthlyFee": "", "Package": ""}
    )

    assert payload.business_name is None
    assert payload.activate_date is None
    assert payload.monthly_fee is None
    assert payload.package is None


def test_payload_parses_package_given_as_json_text() -> None:
    payload = LicensePayload.model_validate({"Package": '{"sms": true, "loyalty": false}'})

    assert payload.package == {"sms": True, "loyalty": False}


def test_payload_rejects_unparseable_date() -> None:
    with pytest.raises(ValidationError):
        LicensePayload.model_validate({"ActivateDate": "someday"})


def test_page_keeps_items_raw() -> None:
    page = LicensePage.model_validate(
        {"data": [{"countid": "x"}], "meta": {"page": 1, "totalPages": 3}}
    )

    assert page.data == [{"countid": "x"}]
    assert page.meta is not None
    assert page.meta.total_pages == 3
