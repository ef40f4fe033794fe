"""Where staffsync keeps its SQLite database."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "staffsync"
DEFAULT_DB_FILENAME: Final[str] = "staffsync.db"
DATA_DIR_ENV: Final[str] = "STAFFSYNC_DATA_DIR"
DB_FILENAME_ENV: Final[str] = "STAFFSYNC_DB_FILENAME"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Directory holding the snapshot, timeline and state tables."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_path(self, *, create_dir: bool = True) -> Path:
        data_dir = self.resolve_data_dir()
        if create_dir:
            data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / self.database_filename

    def sqlite_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = os.getenv("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    data_dir = os.getenv(DATA_DIR_ENV)
    return StorageConfig(
        data_dir=Path(data_dir) if data_dir else _platform_data_home() / APP_DIR_NAME,
        database_filename=optional_env_var(DB_FILENAME_ENV, DEFAULT_DB_FILENAME),
    )


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """An explicit ``DATABASE_URI`` wins over the SQLite file in the data directory."""
    uri = optional_env_var(DATABASE_URI_ENV, "")
    if uri:
        return DatabaseConfig(uri=uri)
    return DatabaseConfig(uri=(storage or get_storage_config()).sqlite_uri())
