"""SQLAlchemy mapping metadata for the license domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    orm,
)
from sqlalchemy.orm import configure_mappers

from licsync.domain.model import (
    ExternalSyncStatus,
    InternalLicenseRecord,
    LicenseStatus,
    LicenseType,
    SyncOutcome,
    SyncRun,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


Money = Numeric(12, 2, asdecimal=True)

mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Licenses --------------------------------------------------------------------

license_table = Table(
    "license",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("key", String(64), nullable=False, unique=True),
    Column("product", String(255), nullable=False),
    Column("plan", String(255), nullable=False),
    Column("term", String(32), nullable=False),
    Column("notes", Text, nullable=False),
    Column("seats_total", Integer, nullable=False),
    Column("agents", Integer, nullable=False),
    Column("agents_name", JSON, nullable=False),
    Column("agents_cost", Money, nullable=False),
    Column("dba", String(255), nullable=True),
    Column("zip", String(32), nullable=True),
    Column("starts_at", Date, nullable=True),
    Column("last_payment", Money, nullable=True),
    Column("sms_balance", Integer, nullable=True),
    Column("status", Enum(LicenseStatus, native_enum=False), nullable=False),
    Column("cancel_date", Date, nullable=True),
    Column("last_active_at", Date, nullable=True),
    Column("expires_at", Date, nullable=True),
    Column("external_note", Text, nullable=True),
    Column("merchant_id", String(64), nullable=True),
    Column("license_type", Enum(LicenseType, native_enum=False), nullable=True),
    Column("package_flags", JSON, nullable=True),
    Column("workspace_id", String(128), nullable=True),
    # correlation keys are indexed but deliberately not unique
    Column("external_app_id", String(128), nullable=True),
    Column("external_email", String(320), nullable=True),
    Column("external_count_id", Integer, nullable=True),
    Column("external_sync_status", Enum(ExternalSyncStatus, native_enum=False), nullable=False),
    Column("last_external_sync_at", UTCDateTime(), nullable=True),
    Column("external_sync_error", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    Index("ix_license_external_app_id", "external_app_id"),
    Index("ix_license_external_email", "external_email"),
    Index("ix_license_external_count_id", "external_count_id"),
)

# Raw copy of the last external snapshot --------------------------------------

external_license_mirror_table = Table(
    "external_license_mirror",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("count_id", Integer, nullable=True),
    Column("app_id", String(128), nullable=True),
    Column("email", String(320), nullable=True),
    Column("payload", JSON, nullable=False),
    Column("fetched_at", UTCDateTime(), nullable=False),
)

# Audit trail -----------------------------------------------------------------

sync_run_table = Table(
    "sync_run",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("started_at", UTCDateTime(), nullable=False),
    Column("finished_at", UTCDateTime(), nullable=False),
    Column("outcome", Enum(SyncOutcome, native_enum=False), nullable=False),
    Column("dry_run", Boolean, nullable=False),
    Column("bidirectional", Boolean, nullable=False),
    Column("sync_to_internal_only", Boolean, nullable=False),
    Column("total_external_fetched", Integer, nullable=False),
    Column("created", Integer, nullable=False),
    Column("updated", Integer, nullable=False),
    Column("failed", Integer, nullable=False),
    Column("skipped", Integer, nullable=False),
    Column("pushed", Integer, nullable=False),
    Column("push_failed", Integer, nullable=False),
    Column("flagged_for_review", Integer, nullable=False),
    Column("not_attempted", Integer, nullable=False),
    Column("error", Text, nullable=True),
    Column("failures", JSON, nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    mapper_registry.map_imperatively(InternalLicenseRecord, license_table)
    mapper_registry.map_imperatively(SyncRun, sync_run_table)
    configure_mappers()
    log.debug("SQLAlchemy mappers configured")
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    start_mappers()
    mapper_registry.metadata.create_all(engine)
