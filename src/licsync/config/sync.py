"""Reconciliation defaults and limits."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float, env_int
from .errors import ConfigurationError

DEFAULT_SYNC_BATCH_SIZE = 200
MAX_SYNC_BATCH_SIZE = 1000
DEFAULT_TIME_BUDGET_SECONDS = 900.0
DEFAULT_MAX_KEY_ATTEMPTS = 3


@dataclass(frozen=True, slots=True)
class SyncConfig:
    batch_size: int = DEFAULT_SYNC_BATCH_SIZE
    time_budget_seconds: float = DEFAULT_TIME_BUDGET_SECONDS
    bidirectional: bool = False
    max_key_attempts: int = DEFAULT_MAX_KEY_ATTEMPTS

    def __post_init__(self) -> None:
        if not 1 <= self.batch_size <= MAX_SYNC_BATCH_SIZE:
            raise ConfigurationError(
                f"Sync batch size must be between 1 and {MAX_SYNC_BATCH_SIZE}, "
                f"got {self.batch_size}"
            )
        if self.time_budget_seconds <= 0:
            raise ConfigurationError("Sync time budget must be positive")
        if self.max_key_attempts < 1:
            raise ConfigurationError("At least one license key attempt is required")


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        batch_size=env_int(
            "LICENSE_SYNC_BATCH_SIZE",
            DEFAULT_SYNC_BATCH_SIZE,
            minimum=1,
            maximum=MAX_SYNC_BATCH_SIZE,
        ),
        time_budget_seconds=env_float(
            "LICENSE_SYNC_TIME_BUDGET_SECONDS", DEFAULT_TIME_BUDGET_SECONDS, minimum=1.0
        ),
        bidirectional=env_bool("LICENSE_SYNC_BIDIRECTIONAL_ENABLED", default=False),
        max_key_attempts=env_int(
            "LICENSE_SYNC_MAX_KEY_ATTEMPTS", DEFAULT_MAX_KEY_ATTEMPTS, minimum=1
        ),
    )
