"""License reconciliation core.

Flow of one run:
1) fetch every external record (or load the raw mirror)
2) match each record to an internal license (appId, then email, then countId)
3) plan the field merge (create / update / noop)
4) write each batch in its own transaction
5) optionally push internally modified licenses back out
"""

from __future__ import annotations

from .contracts import (
    FailureKind,
    MatchConfidence,
    MatchKey,
    MatchResult,
    MergeAction,
    MergePlan,
    PendingSyncResult,
    RecordFailure,
    SingleSyncResult,
    SyncOptions,
    SyncResult,
    SyncStatistics,
    SyncStatus,
)
from .engine import ReconciliationOrchestrator, sync_run_from_result
from .errors import (
    LicenseKeyCollision,
    LicenseSyncError,
    MergeFailed,
    PushFailed,
    RecordSyncError,
    RetryableSyncError,
    SourceUnavailable,
    SyncAlreadyRunning,
    SyncTimedOut,
)
from .keys import generate_license_key
from .match import RecordMatcher
from .policy import FIELD_RULES, INTERNAL_FIELDS, FieldMergePolicy, FieldMode, FieldRule

__all__ = [
    "FIELD_RULES",
    "INTERNAL_FIELDS",
    "FailureKind",
    "FieldMergePolicy",
    "FieldMode",
    "FieldRule",
    "LicenseKeyCollision",
    "LicenseSyncError",
    "MatchConfidence",
    "MatchKey",
    "MatchResult",
    "MergeAction",
    "MergeFailed",
    "MergePlan",
    "PendingSyncResult",
    "PushFailed",
    "ReconciliationOrchestrator",
    "RecordFailure",
    "RecordMatcher",
    "RecordSyncError",
    "RetryableSyncError",
    "SingleSyncResult",
    "SourceUnavailable",
    "SyncAlreadyRunning",
    "SyncOptions",
    "SyncResult",
    "SyncStatistics",
    "SyncStatus",
    "SyncTimedOut",
    "generate_license_key",
    "sync_run_from_result",
]
