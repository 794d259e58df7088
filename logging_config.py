"""Loguru sinks for the stream orchestrator.

Records go to stdout as JSON and, when the log directory has room, to a
rotating file.  Sinks are replaced atomically so the level can be changed
while the service runs.
"""

from __future__ import annotations

import os
import shutil
import sys
import threading
from pathlib import Path

from loguru import logger

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_PATH = Path(os.getenv("LOG_PATH", "logs/streams.log"))
LOG_ROTATION = os.getenv("LOG_ROTATION", "10 MB")
LOG_RETENTION = os.getenv("LOG_RETENTION", "7 days")
# Bytes required to enable file logging (default 50 MB)
MIN_FREE_SPACE = 50 * 1024 * 1024
DISABLE_FILE_LOGGING = os.getenv("DISABLE_FILE_LOGGING", "").lower() in {
    "1",
    "true",
    "yes",
}

_lock = threading.Lock()
_sink_ids: list[int] = []


def _file_sink_allowed(path: Path) -> bool:
    if DISABLE_FILE_LOGGING:
        logger.warning("File logging disabled via DISABLE_FILE_LOGGING")
        return False
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        free_space = shutil.disk_usage(path.parent).free
    except OSError as exc:
        logger.warning("Cannot prepare log directory {}: {}", path.parent, exc)
        return False
    if free_space < MIN_FREE_SPACE:
        logger.warning(
            "Insufficient disk space for {}; skipping file logging ({:.2f} MB free)",
            path,
            free_space / (1024 * 1024),
        )
        return False
    return True


def _configure(level: str = LOG_LEVEL, path: Path | None = None) -> None:
    """Replace the active sinks with JSON sinks at ``level``."""
    global _sink_ids
    level = str(level).upper()
    path = LOG_PATH if path is None else Path(path)
    with _lock:
        for sink_id in _sink_ids:
            try:
                logger.remove(sink_id)
            except ValueError:
                continue
        _sink_ids = [logger.add(sys.stdout, level=level, enqueue=True, serialize=True)]

    if not _file_sink_allowed(path):
        return

    with _lock:
        _sink_ids.append(
            logger.add(
                path,
                rotation=LOG_ROTATION,
                retention=LOG_RETENTION,
                level=level,
                enqueue=True,
                serialize=True,
            )
        )


def setup_json_logger(level: str = LOG_LEVEL) -> None:
    """Initialise structured logging sinks."""
    _configure(level)


def set_log_level(level: str) -> None:
    """Update logger level at runtime."""
    _configure(level)


def configure_from(cfg: dict) -> None:
    """Apply ``log_level`` and ``log_path`` from a loaded configuration."""
    _configure(cfg.get("log_level") or LOG_LEVEL, cfg.get("log_path"))
