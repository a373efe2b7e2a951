from __future__ import annotations

import re

from licsync.domain.reconciliation import generate_license_key
from tests.helpers.licenses import make_external

_SUFFIX = r"[A-Z0-9]{6}"


def test_key_uses_app_id_stem() -> None:
    key = generate_license_key(make_external(app_id="ab-12"))

    assert re.fullmatch(rf"EXT-AB12-{_SUFFIX}", key)


def test_key_falls_back_to_count_id() -> None:
    key = generate_license_key(make_external(app_id=None, count_id=42))

    assert re.fullmatch(rf"EXT-C42-{_SUFFIX}", key)


def test_key_falls_back_to_email_local_part() -> None:
    key = generate_license_key(make_external(app_id=None, count_id=None, email="joe.b@x.io"))

    assert re.fullmatch(rf"EXT-JOEB-{_SUFFIX}", key)


def test_key_without_any_identifier_is_random() -> None:
    key = generate_license_key(make_external(app_id=None, count_id=None, email=None))

    assert re.fullmatch(rf"EXT-{_SUFFIX}-{_SUFFIX}", key)


def test_keys_are_not_repeated() -> None:
    external = make_external()

    keys = {generate_license_key(external) for _ in range(50)}

    assert len(keys) == 50
