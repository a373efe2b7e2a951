"""Public interface for the third-party license API adapter."""

from __future__ import annotations

from .client import LICENSES_PATH, LicenseApiClient, LicenseApiError
from .schema import LicensePage, LicensePayload, LicensePayloadInput, PageMeta
from .translator import build_push_payload, parse_external_license

__all__ = [
    "LICENSES_PATH",
    "LicenseApiClient",
    "LicenseApiError",
    "LicensePage",
    "LicensePayload",
    "LicensePayloadInput",
    "PageMeta",
    "build_push_payload",
    "parse_external_license",
]
