"""Application configuration helpers."""

from __future__ import annotations

from .env import env_bool, env_float, env_int, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .license_api import LicenseApiConfig, get_license_api_config
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import DEFAULT_SYNC_BATCH_SIZE, MAX_SYNC_BATCH_SIZE, SyncConfig, get_sync_config

__all__ = [
    "DEFAULT_SYNC_BATCH_SIZE",
    "MAX_SYNC_BATCH_SIZE",
    "ConfigurationError",
    "DatabaseConfig",
    "LicenseApiConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "env_bool",
    "env_float",
    "env_int",
    "get_database_config",
    "get_license_api_config",
    "get_storage_config",
    "get_sync_config",
    "require_env_vars",
]
