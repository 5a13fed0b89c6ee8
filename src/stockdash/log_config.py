"""
Logging setup for StockDash processes.

Modules log through ``logging.getLogger(__name__)``; this installs the
handlers once at process start (API server, CLI).
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "stockdash.log"

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5


def configure_logging(log_level: str = "INFO", log_dir: Path | None = None) -> None:
    """
    Configure the ``stockdash`` logger tree.

    Args:
        log_level: Level name (DEBUG, INFO, ...); unknown names fall back to INFO
        log_dir: If given, also write to a rotating ``stockdash.log`` there
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger("stockdash")
    root.setLevel(level)

    # Idempotent: drop handlers from a previous call
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False
