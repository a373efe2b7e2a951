from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import inspect, text

from licsync.adapters.sqlalchemy import create_all_tables, start_mappers
from licsync.adapters.sqlalchemy.migrations import current_revision, head_revision
from licsync.domain.model import LicenseStatus
from tests.helpers.licenses import make_internal

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session


def test_start_mappers_is_idempotent() -> None:
    # First invocation happens in the sqlite_engine fixture; calling again should be harmless.
    start_mappers()
    start_mappers()


def test_migrations_create_license_schema(sqlite_engine: Engine) -> None:
    inspector = inspect(sqlite_engine)
    table_names = set(inspector.get_table_names())

    assert {"license", "external_license_mirror", "sync_run", "alembic_version"} <= table_names
    index_names = {index["name"] for index in inspector.get_indexes("license")}
    assert {
        "ix_license_external_app_id",
        "ix_license_external_email",
        "ix_license_external_count_id",
    } <= index_names


def test_migrations_reach_head_revision(sqlite_engine: Engine) -> None:
    with sqlite_engine.connect() as connection:
        assert current_revision(connection) == head_revision() == "0001"


def test_create_all_tables_is_harmless_after_migrations(sqlite_engine: Engine) -> None:
    create_all_tables(sqlite_engine)

    assert "license" in inspect(sqlite_engine).get_table_names()


def test_license_round_trip_keeps_types(sqlite_session: Session) -> None:
    record = make_internal(status=LicenseStatus.CANCEL, package_flags={"sms": True})
    sqlite_session.add(record)
    sqlite_session.commit()
    sqlite_session.expire_all()

    loaded = sqlite_session.get(type(record), record.id)

    assert loaded is not None
    assert loaded.status is LicenseStatus.CANCEL
    assert loaded.package_flags == {"sms": True}
    assert loaded.agents_name == ["ana", "bo"]
    assert loaded.last_external_sync_at == record.last_external_sync_at
    assert loaded.last_external_sync_at is not None
    assert loaded.last_external_sync_at.tzinfo is not None


def test_enums_are_stored_by_member_name(sqlite_session: Session) -> None:
    sqlite_session.add(make_internal(status=LicenseStatus.ACTIVE))
    sqlite_session.commit()

    raw = sqlite_session.execute(text("SELECT status FROM license")).scalar_one()

    assert raw == "ACTIVE"
