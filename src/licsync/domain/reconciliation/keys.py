"""Internal license key generation."""

from __future__ import annotations

import re
import secrets
import string
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Callable

    from licsync.domain.model import ExternalLicenseRecord

    type LicenseKeyGenerator = Callable[[ExternalLicenseRecord], str]

KEY_PREFIX: Final[str] = "EXT"
SUFFIX_LENGTH: Final[int] = 6
DEFAULT_MAX_KEY_ATTEMPTS: Final[int] = 3
_ALPHABET: Final[str] = string.ascii_uppercase + string.digits
_UNSAFE = re.compile(r"[^A-Z0-9]+")


def _random_token(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _stem(external: ExternalLicenseRecord) -> str:
    if external.app_id:
        candidate = external.app_id
    elif external.count_id is not None:
        candidate = f"C{external.count_id}"
    elif external.email:
        candidate = external.email.split("@", 1)[0]
    else:
        candidate = ""
    cleaned = _UNSAFE.sub("", candidate.upper())[:24]
    return cleaned or _random_token(SUFFIX_LENGTH)


def generate_license_key(external: ExternalLicenseRecord) -> str:
    """Return ``EXT-<stem>-<random>``, e.g. ``EXT-A1-7QX2KD`` or ``EXT-C42-0M3ZQA``."""

    return f"{KEY_PREFIX}-{_stem(external)}-{_random_token(SUFFIX_LENGTH)}"
