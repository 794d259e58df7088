"""Unified configuration package."""

import copy

from .constants import DEFAULT_CONFIG, STREAMING_DEFAULTS
from .settings import StreamSettings
from .storage import load_config

config = copy.deepcopy(DEFAULT_CONFIG)


def set_config(cfg: dict) -> None:
    """Replace the global configuration with ``cfg`` on top of the defaults."""

    config.clear()
    config.update(copy.deepcopy(DEFAULT_CONFIG))
    config.update(cfg)


__all__ = [
    "load_config",
    "set_config",
    "config",
    "StreamSettings",
    "DEFAULT_CONFIG",
    "STREAMING_DEFAULTS",
]
