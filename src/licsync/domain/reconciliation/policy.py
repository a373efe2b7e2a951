"""Field-level merge rules between an external snapshot and an internal license."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from licsync.domain.model import ExternalSyncStatus, InternalLicenseRecord, LicenseStatus
from licsync.domain.reconciliation.contracts import MatchKey, MergeAction, MergePlan
from licsync.domain.reconciliation.errors import LicenseKeyCollision, MergeFailed
from licsync.domain.reconciliation.keys import DEFAULT_MAX_KEY_ATTEMPTS, generate_license_key

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import date, datetime

    from licsync.domain.model import ExternalLicenseRecord
    from licsync.domain.reconciliation.contracts import MatchResult
    from licsync.domain.reconciliation.keys import LicenseKeyGenerator

    type _Extract = Callable[[ExternalLicenseRecord, date], object]

log = getLogger(__name__)

DEFAULT_DBA: Final[str] = "External License"


class FieldMode(StrEnum):
    OVERWRITE = "overwrite"
    FILL_IF_EMPTY = "fill_if_empty"


@dataclass(frozen=True, slots=True)
class FieldRule:
    name: str
    mode: FieldMode
    extract: _Extract


def _cancel_date(external: ExternalLicenseRecord, today: date) -> date | None:
    if external.status is None or external.status == 1:
        return None
    return external.last_active or today


FIELD_RULES: Final[tuple[FieldRule, ...]] = (
    FieldRule("dba", FieldMode.OVERWRITE, lambda e, _: e.business_name),
    FieldRule("zip", FieldMode.OVERWRITE, lambda e, _: e.zip),
    FieldRule("starts_at", FieldMode.OVERWRITE, lambda e, _: e.activate_date),
    FieldRule("last_payment", FieldMode.OVERWRITE, lambda e, _: e.monthly_fee),
    FieldRule("sms_balance", FieldMode.OVERWRITE, lambda e, _: e.sms_balance),
    FieldRule("status", FieldMode.OVERWRITE, lambda e, _: LicenseStatus.from_external(e.status)),
    FieldRule("last_active_at", FieldMode.OVERWRITE, lambda e, _: e.last_active),
    FieldRule("expires_at", FieldMode.OVERWRITE, lambda e, _: e.coming_expired_date),
    FieldRule("external_note", FieldMode.OVERWRITE, lambda e, _: e.note),
    FieldRule("external_app_id", FieldMode.OVERWRITE, lambda e, _: e.app_id),
    FieldRule("external_email", FieldMode.OVERWRITE, lambda e, _: e.email),
    FieldRule("external_count_id", FieldMode.OVERWRITE, lambda e, _: e.count_id),
    FieldRule("merchant_id", FieldMode.FILL_IF_EMPTY, lambda e, _: e.merchant_id),
    FieldRule("license_type", FieldMode.FILL_IF_EMPTY, lambda e, _: e.license_type),
    FieldRule("workspace_id", FieldMode.FILL_IF_EMPTY, lambda e, _: e.workspace_id),
    FieldRule("package_flags", FieldMode.FILL_IF_EMPTY, lambda e, _: dict(e.package_flags)),
    FieldRule("cancel_date", FieldMode.FILL_IF_EMPTY, _cancel_date),
)

# Owned by the business side; no rule may ever target these.
INTERNAL_FIELDS: Final[frozenset[str]] = frozenset(
    {"product", "plan", "notes", "agents", "agents_name", "agents_cost", "seats_total", "term"}
)

SYNC_BOOKKEEPING_FIELDS: Final[frozenset[str]] = frozenset(
    {"external_sync_status", "external_sync_error", "last_external_sync_at", "updated_at"}
)


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list, tuple, set)):
        return not value
    return False


def _differs(internal: str | None, external: str | None) -> bool:
    if not internal or not external:
        return False
    return internal.strip().casefold() != external.strip().casefold()


class FieldMergePolicy:
    """Decide, per external record, whether to create, update or leave a license alone.

    Planning never mutates the matched record: the returned ``MergePlan`` carries the
    changes and the orchestrator decides whether to apply them (it does not on dry runs).
    """

    def __init__(
        self,
        *,
        key_generator: LicenseKeyGenerator = generate_license_key,
        max_key_attempts: int = DEFAULT_MAX_KEY_ATTEMPTS,
        rules: Sequence[FieldRule] = FIELD_RULES,
    ) -> None:
        protected = INTERNAL_FIELDS.intersection(rule.name for rule in rules)
        if protected:
            raise ValueError(f"Merge rules may not target internal fields: {sorted(protected)}")
        if max_key_attempts < 1:
            raise ValueError("max_key_attempts must be at least 1")
        self._key_generator = key_generator
        self._max_key_attempts = max_key_attempts
        self._rules = tuple(rules)

    def plan(
        self,
        external: ExternalLicenseRecord,
        match: MatchResult | None,
        *,
        now: datetime,
        key_exists: Callable[[str], bool],
    ) -> MergePlan:
        if match is None:
            return self._plan_create(external, now=now, key_exists=key_exists)
        return self._plan_update(external, match, now=now)

    def _plan_create(
        self,
        external: ExternalLicenseRecord,
        *,
        now: datetime,
        key_exists: Callable[[str], bool],
    ) -> MergePlan:
        today = now.date()
        values: dict[str, object] = {}
        for rule in self._rules:
            value = rule.extract(external, today)
            if not _is_empty(value):
                values[rule.name] = value

        values.setdefault("dba", external.email or DEFAULT_DBA)
        values.setdefault("starts_at", today)
        values.setdefault("status", LicenseStatus.PENDING)

        record = InternalLicenseRecord(
            key=self._allocate_key(external, key_exists),
            external_sync_status=ExternalSyncStatus.SYNCED,
            last_external_sync_at=now,
            created_at=now,
            updated_at=now,
            **values,  # pyright: ignore[reportArgumentType]
        )
        return MergePlan(action=MergeAction.CREATE, record=record, changes=values)

    def _plan_update(
        self,
        external: ExternalLicenseRecord,
        match: MatchResult,
        *,
        now: datetime,
    ) -> MergePlan:
        record = match.record
        today = now.date()
        changes: dict[str, object] = {}
        for rule in self._rules:
            value = rule.extract(external, today)
            if _is_empty(value):
                continue
            current = getattr(record, rule.name)
            if rule.mode is FieldMode.OVERWRITE:
                if current != value:
                    changes[rule.name] = value
            elif _is_empty(current):
                changes[rule.name] = value

        if (
            record.external_sync_status != ExternalSyncStatus.SYNCED
            or record.external_sync_error is not None
        ):
            changes["external_sync_status"] = ExternalSyncStatus.SYNCED
            changes["external_sync_error"] = None

        needs_review = self.needs_review(external, match)
        if needs_review:
            log.warning(
                "License %s matched %s by countId only but business identity differs",
                record.key,
                external.reference,
            )

        if not changes:
            return MergePlan(
                action=MergeAction.NOOP, record=record, match=match, needs_review=needs_review
            )

        changes["last_external_sync_at"] = now
        changes["updated_at"] = now
        return MergePlan(
            action=MergeAction.UPDATE,
            record=record,
            changes=changes,
            match=match,
            needs_review=needs_review,
        )

    @staticmethod
    def needs_review(external: ExternalLicenseRecord, match: MatchResult) -> bool:
        """countId matches are merged regardless, but get flagged when dba/zip disagree."""

        if match.key is not MatchKey.COUNT_ID:
            return False
        record = match.record
        return _differs(record.dba, external.business_name) or _differs(record.zip, external.zip)

    def _allocate_key(
        self, external: ExternalLicenseRecord, key_exists: Callable[[str], bool]
    ) -> str:
        last_error: LicenseKeyCollision | None = None
        for attempt in range(1, self._max_key_attempts + 1):
            try:
                return self._checked_key(external, key_exists)
            except LicenseKeyCollision as exc:
                log.warning(
                    "License key collision for %s (attempt %s/%s): %s",
                    external.reference,
                    attempt,
                    self._max_key_attempts,
                    exc.key,
                )
                last_error = exc
        raise MergeFailed(
            f"Could not allocate a unique license key after {self._max_key_attempts} attempts"
        ) from last_error

    def _checked_key(
        self, external: ExternalLicenseRecord, key_exists: Callable[[str], bool]
    ) -> str:
        key = self._key_generator(external)
        if key_exists(key):
            raise LicenseKeyCollision(key)
        return key
