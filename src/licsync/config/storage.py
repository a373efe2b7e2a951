"""Where the internal license database lives."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_bool

DEFAULT_DB_FILENAME: Final[str] = "licsync.db"
DEFAULT_DATA_DIR: Final[Path] = Path("~/.local/share/licsync")


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Local fallback used when no ``DATABASE_URI`` is configured."""

    data_dir: Path = DEFAULT_DATA_DIR
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def sqlite_uri(self) -> str:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{data_dir / self.database_filename}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("LICSYNC_DATA_DIR")
    return StorageConfig(data_dir=Path(env_dir)) if env_dir else StorageConfig()


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """Resolve the license database (``DATABASE_URI`` wins over the local data dir)."""

    echo = env_bool("DATABASE_ECHO", default=False)
    env_uri = os.getenv("DATABASE_URI", "").strip()
    if env_uri:
        return DatabaseConfig(uri=env_uri, echo=echo)
    return DatabaseConfig(uri=(storage or get_storage_config()).sqlite_uri(), echo=echo)
