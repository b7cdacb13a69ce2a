"""Where ticketpipe keeps its SQLite store and on-disk HTTP cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DATA_DIR_ENV: Final[str] = "TICKETPIPE_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
DEFAULT_DB_FILENAME: Final[str] = "ticketpipe.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """A data directory holding the ticket store and provider response cache."""

    data_dir: Path

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def file_path(self, filename: str, *, ensure: bool = True) -> Path:
        data_dir = self.resolve_data_dir()
        if ensure:
            data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / filename

    def database_path(self, *, ensure: bool = True) -> Path:
        return self.file_path(DEFAULT_DB_FILENAME, ensure=ensure)

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        return self.file_path(HTTP_CACHE_FILENAME, ensure=ensure)


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
    explicit = os.getenv(DATA_DIR_ENV)
    if explicit and explicit.strip():
        return StorageConfig(data_dir=Path(explicit.strip()))
    return StorageConfig(data_dir=_platform_data_home() / "ticketpipe")


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file in the data directory."""

    uri = os.getenv(DATABASE_URI_ENV)
    if uri and uri.strip():
        return DatabaseConfig(uri=uri.strip())
    path = (storage or get_storage_config()).database_path()
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{path}")
