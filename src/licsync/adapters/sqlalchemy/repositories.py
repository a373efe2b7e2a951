"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, delete, func, insert, or_, select

from licsync.adapters.sqlalchemy.mappings import (
    external_license_mirror_table,
    license_table,
    sync_run_table,
)
from licsync.domain.model import (
    ExternalLicenseRecord,
    ExternalSyncStatus,
    InternalLicenseRecord,
    LicenseType,
    SyncRun,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy import ColumnElement
    from sqlalchemy.orm import Session

_DATE_FIELDS = ("activate_date", "coming_expired_date", "last_active")


class SqlAlchemyLicenseRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, license_id: int) -> InternalLicenseRecord | None:
        return self.session.get(InternalLicenseRecord, license_id)

    def find_by_external_app_id(self, app_id: str) -> InternalLicenseRecord | None:
        return self._first(license_table.c.external_app_id == app_id)

    def find_by_external_email(self, email: str) -> InternalLicenseRecord | None:
        return self._first(func.lower(license_table.c.external_email) == email.strip().lower())

    def find_by_external_count_id(self, count_id: int) -> InternalLicenseRecord | None:
        return self._first(license_table.c.external_count_id == count_id)

    def key_exists(self, key: str) -> bool:
        stmt = select(license_table.c.id).where(license_table.c.key == key).limit(1)
        return self.session.execute(stmt).scalar_one_or_none() is not None

    def bulk_insert(self, records: Sequence[InternalLicenseRecord]) -> None:
        if not records:
            return
        self.session.add_all(records)
        self.session.flush()

    def bulk_update(self, records: Sequence[InternalLicenseRecord]) -> None:
        if not records:
            return
        self.session.add_all(records)
        self.session.flush()

    def find_modified_since_external_sync(self) -> list[InternalLicenseRecord]:
        columns = license_table.c
        stmt = (
            select(InternalLicenseRecord)
            .where(
                or_(
                    columns.external_app_id.is_not(None),
                    columns.external_email.is_not(None),
                    columns.external_count_id.is_not(None),
                )
            )
            .where(
                or_(
                    columns.last_external_sync_at.is_(None),
                    and_(
                        columns.updated_at.is_not(None),
                        columns.updated_at > columns.last_external_sync_at,
                    ),
                )
            )
            .order_by(columns.id)
        )
        return list(self.session.execute(stmt).scalars())

    def find_needing_sync(self, limit: int) -> list[InternalLicenseRecord]:
        columns = license_table.c
        stmt = (
            select(InternalLicenseRecord)
            .where(
                columns.external_sync_status.in_(
                    [ExternalSyncStatus.PENDING, ExternalSyncStatus.FAILED]
                )
            )
            .where(columns.external_app_id.is_not(None))
            .order_by(columns.updated_at, columns.id)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def count_by_sync_status(self) -> dict[ExternalSyncStatus, int]:
        status = license_table.c.external_sync_status
        stmt = select(status, func.count()).group_by(status)
        return {ExternalSyncStatus(value): count for value, count in self.session.execute(stmt)}

    def _first(self, condition: ColumnElement[bool]) -> InternalLicenseRecord | None:
        # oldest row wins when a correlation key was duplicated by hand
        stmt = (
            select(InternalLicenseRecord)
            .where(condition)
            .order_by(license_table.c.id)
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()


def _record_to_payload(record: ExternalLicenseRecord) -> dict[str, Any]:
    return {
        "count_id": record.count_id,
        "app_id": record.app_id,
        "license_type": str(record.license_type),
        "merchant_id": record.merchant_id,
        "email": record.email,
        "business_name": record.business_name,
        "zip": record.zip,
        "activate_date": record.activate_date.isoformat() if record.activate_date else None,
        "coming_expired_date": (
            record.coming_expired_date.isoformat() if record.coming_expired_date else None
        ),
        "monthly_fee": str(record.monthly_fee) if record.monthly_fee is not None else None,
        "sms_balance": record.sms_balance,
        "note": record.note,
        "package_flags": dict(record.package_flags),
        "workspace_id": record.workspace_id,
        "last_active": record.last_active.isoformat() if record.last_active else None,
        "status": record.status,
    }


def _record_from_payload(payload: dict[str, Any]) -> ExternalLicenseRecord:
    values = dict(payload)
    for name in _DATE_FIELDS:
        raw = values.get(name)
        values[name] = date.fromisoformat(raw) if raw else None
    fee = values.get("monthly_fee")
    values["monthly_fee"] = Decimal(fee) if fee is not None else None
    values["license_type"] = LicenseType(values.get("license_type") or LicenseType.PRODUCT)
    values["package_flags"] = dict(values.get("package_flags") or {})
    return ExternalLicenseRecord(**values)


class SqlAlchemyExternalLicenseMirrorRepository:
    """Keeps exactly one snapshot: every ``replace`` drops the previous one."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def replace(self, records: Sequence[ExternalLicenseRecord], *, fetched_at: datetime) -> None:
        self.session.execute(delete(external_license_mirror_table))
        if not records:
            return
        rows = [
            {
                "count_id": record.count_id,
                "app_id": record.app_id,
                "email": record.email,
                "payload": _record_to_payload(record),
                "fetched_at": fetched_at,
            }
            for record in records
        ]
        self.session.execute(insert(external_license_mirror_table), rows)

    def load(self) -> list[ExternalLicenseRecord]:
        stmt = select(external_license_mirror_table.c.payload).order_by(
            external_license_mirror_table.c.id
        )
        return [
            _record_from_payload(cast(dict[str, Any], payload))
            for payload in self.session.execute(stmt).scalars()
        ]


class SqlAlchemySyncRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, run: SyncRun) -> None:
        self.session.add(run)

    def recent(self, limit: int = 20) -> list[SyncRun]:
        stmt = (
            select(SyncRun)
            .order_by(sync_run_table.c.started_at.desc(), sync_run_table.c.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())
