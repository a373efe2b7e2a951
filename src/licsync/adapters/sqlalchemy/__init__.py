"""SQLAlchemy adapter package for licsync."""

from __future__ import annotations

from .mappings import (
    create_all_tables,
    external_license_mirror_table,
    license_table,
    mapper_registry,
    start_mappers,
    sync_run_table,
)
from .repositories import (
    SqlAlchemyExternalLicenseMirrorRepository,
    SqlAlchemyLicenseRepository,
    SqlAlchemySyncRunRepository,
)

__all__ = [
    "SqlAlchemyExternalLicenseMirrorRepository",
    "SqlAlchemyLicenseRepository",
    "SqlAlchemySyncRunRepository",
    "create_all_tables",
    "external_license_mirror_table",
    "license_table",
    "mapper_registry",
    "start_mappers",
    "sync_run_table",
]
