"""External license API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

LICENSE_API_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000


@dataclass(frozen=True)
class LicenseApiConfig:
    """Holds the third-party license API configuration values."""

    base_url: str
    api_key: str
    resilience: ResilienceConfig
    page_size: int = DEFAULT_PAGE_SIZE


def _rate_limit() -> RateLimit | None:
    # 0 disables client-side throttling
    per_second = env_int("EXTERNAL_LICENSE_API_MAX_REQUESTS_PER_SECOND", 0, minimum=0)
    return RateLimit(max_calls=per_second) if per_second else None


def get_license_api_config(*, resilience: ResilienceConfig | None = None) -> LicenseApiConfig:
    values = require_env_vars(("EXTERNAL_LICENSE_API_URL", "EXTERNAL_LICENSE_API_KEY"))
    base_url = values["EXTERNAL_LICENSE_API_URL"].rstrip("/")
    api_key = values["EXTERNAL_LICENSE_API_KEY"]
    page_size = env_int(
        "LICENSE_SYNC_PAGE_SIZE", DEFAULT_PAGE_SIZE, minimum=1, maximum=MAX_PAGE_SIZE
    )
    if resilience is None:
        resilience = ResilienceConfig(
            name="license-api",
            base_url=base_url,
            timeout_seconds=env_float(
                "EXTERNAL_LICENSE_API_TIMEOUT_SECONDS", LICENSE_API_TIMEOUT_SECONDS, minimum=0.1
            ),
            retry=RetryPolicy.attempts(
                env_int("LICENSE_SYNC_RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS, minimum=0)
            ),
            ratelimit=_rate_limit(),
            default_headers={"x-api-key": api_key, "Accept": "application/json"},
        )
    return LicenseApiConfig(
        base_url=base_url, api_key=api_key, resilience=resilience, page_size=page_size
    )
