"""initial license schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from licsync.adapters.sqlalchemy.mappings import UTCDateTime

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_LICENSE_STATUS = sa.Enum("ACTIVE", "CANCEL", "PENDING", name="licensestatus", native_enum=False)
_LICENSE_TYPE = sa.Enum("DEMO", "PRODUCT", name="licensetype", native_enum=False)
_SYNC_STATUS = sa.Enum(
    "PENDING", "SYNCED", "FAILED", name="externalsyncstatus", native_enum=False
)
_SYNC_OUTCOME = sa.Enum(
    "SUCCEEDED", "TIMED_OUT", "SOURCE_UNAVAILABLE", name="syncoutcome", native_enum=False
)


def upgrade() -> None:
    op.create_table(
        "license",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("product", sa.String(length=255), nullable=False),
        sa.Column("plan", sa.String(length=255), nullable=False),
        sa.Column("term", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("seats_total", sa.Integer(), nullable=False),
        sa.Column("agents", sa.Integer(), nullable=False),
        sa.Column("agents_name", sa.JSON(), nullable=False),
        sa.Column("agents_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("dba", sa.String(length=255), nullable=True),
        sa.Column("zip", sa.String(length=32), nullable=True),
        sa.Column("starts_at", sa.Date(), nullable=True),
        sa.Column("last_payment", sa.Numeric(12, 2), nullable=True),
        sa.Column("sms_balance", sa.Integer(), nullable=True),
        sa.Column("status", _LICENSE_STATUS, nullable=False),
        sa.Column("cancel_date", sa.Date(), nullable=True),
        sa.Column("last_active_at", sa.Date(), nullable=True),
        sa.Column("expires_at", sa.Date(), nullable=True),
        sa.Column("external_note", sa.Text(), nullable=True),
        sa.Column("merchant_id", sa.String(length=64), nullable=True),
        sa.Column("license_type", _LICENSE_TYPE, nullable=True),
        sa.Column("package_flags", sa.JSON(), nullable=True),
        sa.Column("workspace_id", sa.String(length=128), nullable=True),
        sa.Column("external_app_id", sa.String(length=128), nullable=True),
        sa.Column("external_email", sa.String(length=320), nullable=True),
        sa.Column("external_count_id", sa.Integer(), nullable=True),
        sa.Column("external_sync_status", _SYNC_STATUS, nullable=False),
        sa.Column("last_external_sync_at", UTCDateTime(), nullable=True),
        sa.Column("external_sync_error", sa.Text(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=True),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_license")),
        sa.UniqueConstraint("key", name=op.f("uq_license_key")),
    )
    op.create_index("ix_license_external_app_id", "license", ["external_app_id"])
    op.create_index("ix_license_external_email", "license", ["external_email"])
    op.create_index("ix_license_external_count_id", "license", ["external_count_id"])

    op.create_table(
        "external_license_mirror",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("count_id", sa.Integer(), nullable=True),
        sa.Column("app_id", sa.String(length=128), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("fetched_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_external_license_mirror")),
    )

    op.create_table(
        "sync_run",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("started_at", UTCDateTime(), nullable=False),
        sa.Column("finished_at", UTCDateTime(), nullable=False),
        sa.Column("outcome", _SYNC_OUTCOME, nullable=False),
        sa.Column("dry_run", sa.Boolean(), nullable=False),
        sa.Column("bidirectional", sa.Boolean(), nullable=False),
        sa.Column("sync_to_internal_only", sa.Boolean(), nullable=False),
        sa.Column("total_external_fetched", sa.Integer(), nullable=False),
        sa.Column("created", sa.Integer(), nullable=False),
        sa.Column("updated", sa.Integer(), nullable=False),
        sa.Column("failed", sa.Integer(), nullable=False),
        sa.Column("skipped", sa.Integer(), nullable=False),
        sa.Column("pushed", sa.Integer(), nullable=False),
        sa.Column("push_failed", sa.Integer(), nullable=False),
        sa.Column("flagged_for_review", sa.Integer(), nullable=False),
        sa.Column("not_attempted", sa.Integer(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("failures", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sync_run")),
    )


def downgrade() -> None:
    op.drop_table("sync_run")
    op.drop_table("external_license_mirror")
    op.drop_index("ix_license_external_count_id", table_name="license")
    op.drop_index("ix_license_external_email", table_name="license")
    op.drop_index("ix_license_external_app_id", table_name="license")
    op.drop_table("license")
