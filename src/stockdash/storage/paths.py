"""
Path management for StockDash local storage.

Directory structure:
    ~/.stockdash/
    ├── config/
    │   └── stockdash.yaml
    ├── data/
    │   └── stockdash.db
    └── logs/
        └── stockdash.log
"""

from __future__ import annotations

import os
from pathlib import Path

import msgspec


class StockDashPaths(msgspec.Struct, frozen=True):
    """
    Paths for StockDash local storage.

    All paths are resolved relative to a root directory,
    defaulting to ~/.stockdash/ or $STOCKDASH_HOME if set.

    Example:
        paths = StockDashPaths.default()
        paths.ensure_dirs()
        store = SQLiteStore(paths.database)
    """

    root: Path

    @classmethod
    def default(cls) -> StockDashPaths:
        """
        Create paths with default root.

        Uses $STOCKDASH_HOME if set, otherwise ~/.stockdash/
        """
        if env_home := os.environ.get("STOCKDASH_HOME"):
            root = Path(env_home).expanduser()
        else:
            root = Path.home() / ".stockdash"
        return cls(root=root)

    @classmethod
    def from_root(cls, root: Path | str) -> StockDashPaths:
        """Create paths with custom root."""
        return cls(root=Path(root))

    @property
    def config(self) -> Path:
        """Config directory: ~/.stockdash/config/"""
        return self.root / "config"

    @property
    def config_file(self) -> Path:
        """Settings file: ~/.stockdash/config/stockdash.yaml"""
        return self.config / "stockdash.yaml"

    @property
    def data(self) -> Path:
        """Data directory: ~/.stockdash/data/"""
        return self.root / "data"

    @property
    def database(self) -> Path:
        """Default SQLite database: ~/.stockdash/data/stockdash.db"""
        return self.data / "stockdash.db"

    @property
    def logs(self) -> Path:
        """Logs directory: ~/.stockdash/logs/"""
        return self.root / "logs"

    def ensure_dirs(self) -> None:
        """Create all directories if they don't exist."""
        for d in (self.config, self.data, self.logs):
            d.mkdir(parents=True, exist_ok=True)
