"""Helpers for loading configuration."""

from __future__ import annotations

import copy
import json
import os

from loguru import logger

from .constants import DEFAULT_CONFIG, STREAMING_DEFAULTS, STREAMING_ENV


def _read_config_file(path: str) -> dict:
    """Read a JSON configuration file from ``path``."""

    if not os.path.exists(path):
        raise FileNotFoundError(path)
    with open(path) as f:
        return json.load(f)


def _apply_defaults(data: dict) -> dict:
    """Populate missing configuration keys."""
    for key, value in DEFAULT_CONFIG.items():
        if isinstance(value, (dict, list)):
            data.setdefault(key, copy.deepcopy(value))
        else:
            data.setdefault(key, value)
    streaming = data["streaming"]
    for key, value in STREAMING_DEFAULTS.items():
        streaming.setdefault(key, value)
    return data


def _apply_env(data: dict) -> None:
    """Override ``streaming`` values from ``HLS_*`` environment variables."""
    streaming = data["streaming"]
    for env_name, key in STREAMING_ENV.items():
        raw = os.getenv(env_name)
        if raw is None:
            continue
        default = STREAMING_DEFAULTS[key]
        if isinstance(default, str):
            streaming[key] = raw
            continue
        try:
            streaming[key] = type(default)(raw)
        except ValueError:
            logger.warning("ignoring invalid {}={!r}", env_name, raw)


def load_config(path: str | None = None, *, data: dict | None = None) -> dict:
    """Load configuration from ``path`` and fill in defaults.

    A missing file is not an error: the worker runs on defaults and the
    environment alone.
    """

    if data is None:
        if path and os.path.exists(path):
            data = _read_config_file(path)
        else:
            if path:
                logger.info("config file {} not found; using defaults", path)
            data = {}
    data = _apply_defaults(data)
    _apply_env(data)
    return data
