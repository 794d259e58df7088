"""Lightweight structured logging helpers used across the worker.

Provides convenience wrappers around :mod:`loguru` so modules can emit
structured stream events with credentials stripped from URLs and commands.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict

from loguru import logger

from .url import mask_credentials

# in-memory state for throttling helpers
_last_times: Dict[str, float] = {}

_MASKED_FIELDS = ("url", "input_url", "cmd")


def _log(level: str, event: str, **fields: Any) -> None:
    """Internal helper to emit a structured log line."""

    for key in _MASKED_FIELDS:
        if key in fields:
            fields[key] = mask_credentials(str(fields[key]))
    payload: Dict[str, Any] = {
        "ts": time.time(),
        "level": level,
        "event": event,
        **fields,
    }
    logger.log(level.upper(), json.dumps(payload, default=str))


def event(event: str, **fields: Any) -> None:
    """Log an informational *event* with structured *fields*."""

    _log("info", event, **fields)


def warn(event: str, **fields: Any) -> None:
    """Log a warning *event*."""

    _log("warning", event, **fields)


def error(event: str, **fields: Any) -> None:
    """Log an error *event*."""

    _log("error", event, **fields)


def every(seconds: float, key: str) -> bool:
    """Return ``True`` if ``seconds`` elapsed since last call with *key*.

    This is useful for rate-limiting noisy logs.
    """

    now = time.time()
    last = _last_times.get(key, 0)
    if now - last >= seconds:
        _last_times[key] = now
        return True
    return False


def log_throttled(fn, *args: Any, key: str, interval: float = 60, **kwargs: Any) -> None:
    """Invoke ``fn`` only if ``interval`` seconds elapsed for ``key``."""

    if every(interval, key):
        fn(*args, **kwargs)


__all__ = ["event", "warn", "error", "every", "log_throttled"]
