"""Persisted record of finished sync runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from licsync.domain.model.enums import SyncOutcome

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class SyncRun:
    id: int | None = None
    started_at: datetime
    finished_at: datetime
    outcome: SyncOutcome = SyncOutcome.SUCCEEDED
    dry_run: bool = False
    bidirectional: bool = False
    sync_to_internal_only: bool = False
    total_external_fetched: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0
    pushed: int = 0
    push_failed: int = 0
    flagged_for_review: int = 0
    not_attempted: int = 0
    error: str | None = None
    failures: list[dict[str, str]] = field(default_factory=list[dict[str, str]])
