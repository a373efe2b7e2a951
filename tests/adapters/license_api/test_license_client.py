"""License API client against an in-process mock transport."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from licsync.adapters.http_resilience import ResilienceConfig, ResilientClient, RetryPolicy
from licsync.adapters.license_api import LicenseApiClient
from licsync.config import LicenseApiConfig
from licsync.domain.reconciliation import RecordSyncError, SourceUnavailable
from tests.helpers.licenses import make_internal

if TYPE_CHECKING:
    from collections.abc import Callable

BASE_URL = "https://licenses.test"

type Handler = Callable[[httpx.Request], httpx.Response]


def _item(index: int) -> dict[str, Any]:
    return {
        "countid": index,
        "appid": f"A{index}",
        "Email_license": f"shop{index}@example.com",
        "dba": f"Shop {index}",
        "status": 1,
    }


def _client(
    handler: Handler, *, page_size: int = 2
) -> tuple[LicenseApiClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    resilience = ResilienceConfig(
        name="license-api-test",
        base_url=BASE_URL,
        retry=RetryPolicy(total=2, backoff_factor=0.0, backoff_jitter=0.0),
        default_headers={"x-api-key": "secret"},
    )
    config = LicenseApiConfig(
        base_url=BASE_URL, api_key="secret", resilience=resilience, page_size=page_size
    )
    client = LicenseApiClient(
        config=config,
        client_factory=lambda cfg: ResilientClient(cfg, transport=httpx.MockTransport(recording)),
    )
    return client, seen


def _page_number(request: httpx.Request) -> int:
    return int(request.url.params["page"])


def test_fetch_follows_total_pages() -> None:
    pages = {1: [_item(1), _item(2)], 2: [_item(3)]}

    def handler(request: httpx.Request) -> httpx.Response:
        page = _page_number(request)
        return httpx.Response(200, json={"data": pages[page], "meta": {"totalPages": 2}})

    client, seen = _client(handler)

    result = client.fetch_all_pages()

    assert [record.app_id for record in result.records] == ["A1", "A2", "A3"]
    assert result.pages_fetched == 2
    assert [request.url.path for request in seen] == ["/api/v1/licenses"] * 2
    assert seen[0].url.params["limit"] == "2"
    assert seen[0].headers["x-api-key"] == "secret"


def test_fetch_without_meta_stops_on_short_page() -> None:
    pages = {1: [_item(1), _item(2)], 2: [_item(3), _item(4)], 3: []}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": pages[_page_number(request)]})

    client, seen = _client(handler)

    result = client.fetch_all_pages()

    assert len(result.records) == 4
    assert len(seen) == 3


def test_invalid_items_are_rejected_not_fatal() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        bad = {"appid": "A9", "ActivateDate": "not a date"}
        return httpx.Response(200, json={"data": [_item(1), bad], "meta": {"totalPages": 1}})

    client, _ = _client(handler)

    result = client.fetch_all_pages()

    assert [record.app_id for record in result.records] == ["A1"]
    assert [rejected.reference for rejected in result.rejected] == ["appId=A9"]
    assert result.total == 2


def test_transient_errors_are_retried() -> None:
    attempts: list[int] = []

    def handler(_request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"data": [_item(1)], "meta": {"totalPages": 1}})

    client, _ = _client(handler)

    result = client.fetch_all_pages()

    assert len(result.records) == 1
    assert len(attempts) == 2


def test_persistent_failure_raises_source_unavailable() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client, seen = _client(handler)

    with pytest.raises(SourceUnavailable):
        client.fetch_all_pages()

    assert len(seen) == 3


def test_unexpected_payload_raises_source_unavailable() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "maintenance"})

    client, _ = _client(handler)

    with pytest.raises(SourceUnavailable, match="Unexpected"):
        client.fetch_all_pages()


def test_push_targets_app_id_then_email() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/licenses/A404":
            return httpx.Response(404)
        return httpx.Response(200, json={"ok": True})

    client, seen = _client(handler)
    by_app = make_internal()
    by_email = make_internal(key="LIC-2", external_app_id=None, external_email="two@shop.com")
    fallback = make_internal(key="LIC-3", external_app_id="A404", external_email="three@shop.com")

    outcomes = client.push_updates([by_app, by_email, fallback])

    assert [outcome.succeeded for outcome in outcomes] == [True, True, True]
    assert [request.method for request in seen] == ["PUT"] * 4
    assert [request.url.raw_path.decode() for request in seen] == [
        "/api/v1/licenses/A1",
        "/api/v1/licenses/email/two%40shop.com",
        "/api/v1/licenses/A404",
        "/api/v1/licenses/email/three%40shop.com",
    ]
    body = json.loads(seen[0].content)
    assert body["dba"] == "Shop One"
    assert body["Note"] == "call before renewal"


def test_push_reports_per_record_errors() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"error": "bad"})

    client, _ = _client(handler)
    unreachable = make_internal(key="LIC-X", external_app_id=None, external_email=None)

    outcomes = client.push_updates([make_internal(external_email=None), unreachable])

    assert not outcomes[0].succeeded
    assert "422" in (outcomes[0].error or "")
    assert outcomes[1].error is not None
    assert "neither an appId nor an email" in outcomes[1].error


def test_fetch_one_reads_a_wrapped_license() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": _item(4)})

    client, seen = _client(handler)

    record = client.fetch_one("A/4")

    assert record is not None
    assert record.app_id == "A4"
    assert seen[0].url.raw_path == b"/api/v1/licenses/A%2F4"


def test_fetch_one_returns_none_for_unknown_license() -> None:
    client, seen = _client(lambda _request: httpx.Response(404))

    assert client.fetch_one("A404") is None
    assert len(seen) == 1


def test_fetch_one_rejects_an_invalid_license() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"appid": "A9", "ActivateDate": "not a date"})

    client, _ = _client(handler)

    with pytest.raises(RecordSyncError, match="A9"):
        client.fetch_one("A9")


def test_fetch_one_raises_source_unavailable_on_server_errors() -> None:
    client, seen = _client(lambda _request: httpx.Response(502))

    with pytest.raises(SourceUnavailable):
        client.fetch_one("A1")

    assert len(seen) == 3


def test_health_check_reports_reachability() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["limit"] == "1"
        return httpx.Response(200, json={"data": [_item(1)], "meta": {"totalPages": 9}})

    healthy, _ = _client(handler)
    broken, _ = _client(lambda _request: httpx.Response(500))

    assert healthy.check_health().healthy
    failed = broken.check_health()
    assert not failed.healthy
    assert failed.error is not None
