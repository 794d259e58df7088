from __future__ import annotations

"""Accessors for the process-wide configuration."""

from config import StreamSettings
from config import config as _config


def get_config() -> dict:
    """Return application configuration."""
    return _config


def get_settings() -> StreamSettings:
    """Return a typed snapshot of the current streaming settings."""
    return StreamSettings.from_config(_config)


__all__ = ["get_config", "get_settings"]
