"""Locate the internal license an external record belongs to."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from licsync.domain.reconciliation.contracts import MatchKey, MatchResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from licsync.domain.model import ExternalLicenseRecord, InternalLicenseRecord
    from licsync.domain.ports.persistence import LicenseLookup

    type _Lookup = Callable[[LicenseLookup, ExternalLicenseRecord], InternalLicenseRecord | None]

log = getLogger(__name__)


def _by_app_id(
    store: LicenseLookup, external: ExternalLicenseRecord
) -> InternalLicenseRecord | None:
    if not external.app_id:
        return None
    return store.find_by_external_app_id(external.app_id)


def _by_email(
    store: LicenseLookup, external: ExternalLicenseRecord
) -> InternalLicenseRecord | None:
    if not external.email:
        return None
    return store.find_by_external_email(external.email)


def _by_count_id(
    store: LicenseLookup, external: ExternalLicenseRecord
) -> InternalLicenseRecord | None:
    if external.count_id is None:
        return None
    return store.find_by_external_count_id(external.count_id)


# Strongest key first. appId only exists on product licenses, countId is a recycled
# sequence number and therefore the last resort.
MATCH_CASCADE: tuple[tuple[MatchKey, _Lookup], ...] = (
    (MatchKey.APP_ID, _by_app_id),
    (MatchKey.EMAIL, _by_email),
    (MatchKey.COUNT_ID, _by_count_id),
)


class RecordMatcher:
    """Priority cascade: a key that finds nothing falls through, the first hit wins."""

    def match(self, external: ExternalLicenseRecord, store: LicenseLookup) -> MatchResult | None:
        for key, lookup in MATCH_CASCADE:
            record = lookup(store, external)
            if record is not None:
                log.debug("Matched %s to license %s via %s", external.reference, record.key, key)
                return MatchResult(record=record, key=key)
        return None
