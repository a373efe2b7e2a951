"""HTTP client for the third-party license API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from licsync.adapters.http_resilience import ResilientClient
from licsync.domain.ports.fetching import (
    ExternalLicenseFetchResult,
    PushOutcome,
    RejectedLicense,
    SourceHealth,
)
from licsync.domain.reconciliation.errors import PushFailed, RecordSyncError, SourceUnavailable

from .schema import LicensePage
from .translator import build_push_payload, describe_raw_item, parse_external_license

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from licsync.config import LicenseApiConfig, ResilienceConfig
    from licsync.domain.model import ExternalLicenseRecord, InternalLicenseRecord
    from licsync.domain.ports.fetching import ExternalLicenseSource

log = getLogger(__name__)

LICENSES_PATH: Final[str] = "/api/v1/licenses"
MAX_PAGES: Final[int] = 1000


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LicenseApiError(RuntimeError):
    """Raised when the license API answers with something that is not a license page."""


@dataclass(slots=True)
class LicenseApiClient:
    config: LicenseApiConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    max_pages: int = MAX_PAGES
    clock: Callable[[], datetime] = field(default=_utcnow)

    def fetch_all_pages(self) -> ExternalLicenseFetchResult:
        try:
            return asyncio.run(self._fetch_all_pages_async())
        except (httpx.HTTPError, LicenseApiError) as exc:
            log.error("License API unavailable: %s", exc)
            raise SourceUnavailable(f"License API unavailable: {exc}") from exc

    def fetch_one(self, app_id: str) -> ExternalLicenseRecord | None:
        try:
            payload = asyncio.run(self._fetch_one_async(app_id))
        except (httpx.HTTPError, LicenseApiError) as exc:
            log.error("License API unavailable: %s", exc)
            raise SourceUnavailable(f"License API unavailable: {exc}") from exc
        if payload is None:
            return None
        try:
            return parse_external_license(payload)
        except (ValidationError, ValueError) as exc:
            raise RecordSyncError(f"Invalid license {app_id} from the license API: {exc}") from exc

    def check_health(self) -> SourceHealth:
        try:
            asyncio.run(self._check_health_async())
        except (httpx.HTTPError, LicenseApiError) as exc:
            log.warning("License API health check failed: %s", exc)
            return SourceHealth(healthy=False, checked_at=self.clock(), error=str(exc))
        return SourceHealth(healthy=True, checked_at=self.clock())

    def push_updates(self, records: Sequence[InternalLicenseRecord]) -> list[PushOutcome]:
        return asyncio.run(self._push_updates_async(records))

    async def _fetch_all_pages_async(self) -> ExternalLicenseFetchResult:
        result = ExternalLicenseFetchResult()
        page_size = self.config.page_size
        page = 1

        async with self.client_factory(self.config.resilience) as client:
            while page <= self.max_pages:
                body = await self._request_page(client=client, page=page, limit=page_size)
                result.pages_fetched = page
                for index, raw in enumerate(body.data):
                    try:
                        result.records.append(parse_external_license(raw))
                    except (ValidationError, ValueError) as exc:
                        reference = describe_raw_item(raw, page=page, index=index)
                        log.warning("Rejected external license %s: %s", reference, exc)
                        result.rejected.append(
                            RejectedLicense(reference=reference, error=str(exc))
                        )

                total_pages = body.meta.total_pages if body.meta is not None else None
                if total_pages is not None:
                    if page >= total_pages:
                        break
                elif len(body.data) < page_size:
                    break
                page += 1
            else:
                log.warning("Stopped paging the license API after %s pages", self.max_pages)

        return result

    async def _request_page(
        self,
        *,
        client: ResilientClient,
        page: int,
        limit: int,
    ) -> LicensePage:
        response = await client.get(
            self._url(LICENSES_PATH),
            params=httpx.QueryParams({"page": page, "limit": limit}),
        )
        response.raise_for_status()

        payload = response.json()
        if not isinstance(payload, dict) or "data" not in payload:
            raise LicenseApiError(f"Unexpected license API response payload on page {page}")
        try:
            return LicensePage.model_validate(payload)
        except ValidationError as exc:
            raise LicenseApiError(f"Malformed license page {page}: {exc}") from exc

    async def _fetch_one_async(self, app_id: str) -> dict[str, Any] | None:
        async with self.client_factory(self.config.resilience) as client:
            response = await client.get(self._url(f"{LICENSES_PATH}/{quote(app_id, safe='')}"))
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()

        payload = response.json()
        # single licenses come either bare or wrapped like a page
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        if not isinstance(payload, dict):
            raise LicenseApiError(f"Unexpected license API response payload for {app_id}")
        return payload

    async def _check_health_async(self) -> None:
        async with self.client_factory(self.config.resilience) as client:
            await self._request_page(client=client, page=1, limit=1)

    async def _push_updates_async(
        self, records: Sequence[InternalLicenseRecord]
    ) -> list[PushOutcome]:
        outcomes: list[PushOutcome] = []
        async with self.client_factory(self.config.resilience) as client:
            for record in records:
                try:
                    await self._push_one(client=client, record=record)
                except PushFailed as exc:
                    outcomes.append(PushOutcome(record=record, error=str(exc)))
                else:
                    outcomes.append(PushOutcome(record=record))
        return outcomes

    async def _push_one(self, *, client: ResilientClient, record: InternalLicenseRecord) -> None:
        payload = build_push_payload(record)
        errors: list[str] = []
        targets: list[str] = []
        if record.external_app_id:
            targets.append(f"{LICENSES_PATH}/{quote(record.external_app_id, safe='')}")
        if record.external_email:
            targets.append(f"{LICENSES_PATH}/email/{quote(record.external_email, safe='')}")
        if not targets:
            raise PushFailed(f"License {record.key} has neither an appId nor an email to push to")

        # appId first, email as fallback
        for target in targets:
            try:
                response = await client.put(self._url(target), json=payload)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                log.warning("Push of license %s to %s failed: %s", record.key, target, exc)
                errors.append(f"{target}: {exc}")
                continue
            return
        raise PushFailed("; ".join(errors))

    def _url(self, path: str) -> str:
        if self.config.resilience.base_url is not None:
            return path
        return f"{self.config.base_url}{path}"


if TYPE_CHECKING:

    def _source_check(client: LicenseApiClient) -> ExternalLicenseSource:
        return client
