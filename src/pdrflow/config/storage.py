"""Local data directory holding the SQLite database and the staging tree."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "pdrflow"
DEFAULT_DB_FILENAME: Final[str] = "pdrflow.db"
STAGING_DIRNAME: Final[str] = "staging"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    staging_dirname: str = STAGING_DIRNAME

    @property
    def root(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def _entry(self, name: str, *, ensure: bool) -> Path:
        root = self.root
        if ensure:
            root.mkdir(parents=True, exist_ok=True)
        return root / name

    def database_path(self, *, ensure: bool = True) -> Path:
        return self._entry(self.database_filename, ensure=ensure)

    def staging_root(self, *, ensure: bool = True) -> Path:
        """Directory used by the ``local`` backend as its object store."""

        return self._entry(self.staging_dirname, ensure=ensure)

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


def platform_data_dir() -> Path:
    """``%LOCALAPPDATA%/pdrflow`` on Windows, ``$XDG_DATA_HOME/pdrflow`` elsewhere."""

    if os.name == "nt":
        variable, fallback = "LOCALAPPDATA", Path.home() / "AppData" / "Local"
    else:
        variable, fallback = "XDG_DATA_HOME", Path.home() / ".local" / "share"
    base = os.getenv(variable)
    return ((Path(base) if base else fallback) / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    override = os.getenv("PDRFLOW_DATA_DIR")
    return StorageConfig(data_dir=Path(override) if override else platform_data_dir())
