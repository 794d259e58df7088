from __future__ import annotations

"""Typed view over the ``streaming`` configuration section."""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .constants import DEFAULT_CONFIG, STREAMING_DEFAULTS


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return default


@dataclass
class StreamSettings:
    """Runtime knobs for the orchestrator.

    Attributes mirror :data:`config.constants.STREAMING_DEFAULTS`; paths and
    the ffmpeg binary come from the top-level configuration.
    """

    streams_dir: Path = field(default_factory=lambda: Path(DEFAULT_CONFIG["streams_dir"]))
    hls_base_path: str = "/hls"
    ffmpeg_path: str = "ffmpeg"
    default_quality: str = "medium"
    segment_seconds: int = 2
    playlist_size: int = 3
    gop_size: int = 30
    encoder_threads: int = 2
    rtsp_timeout_usec: int = 10_000_000
    stderr_tail_lines: int = 20
    stop_timeout: float = 5.0
    readiness_interval: float = 0.5
    readiness_attempts: int = 20
    snapshot_interval: float = 3.0
    snapshot_window: int = 3
    snapshot_timeout: float = 10.0
    health_interval: float = 30.0
    stale_after: float = 10.0
    min_segment_bytes: int = 1000
    max_retries: int = 5
    reconnect_delay: float = 2.0
    quality_switch_delay: float = 2.0
    restart_delay: float = 2.0
    park_cooldown: float = 300.0
    reconnect_on_exit: bool = True
    auto_monitor_initial_delay: float = 10.0
    auto_monitor_interval: float = 120.0
    probe_timeout: float = 5.0

    @classmethod
    def from_config(cls, cfg: dict) -> "StreamSettings":
        """Build settings from a loaded configuration dictionary."""
        streaming = {**STREAMING_DEFAULTS, **(cfg.get("streaming") or {})}
        known = {f.name: f for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in streaming.items():
            if key not in known:
                continue
            default = STREAMING_DEFAULTS.get(key)
            if isinstance(default, bool):
                kwargs[key] = _as_bool(value, default)
            elif isinstance(default, (int, float)) and not isinstance(value, bool):
                kwargs[key] = type(default)(value)
            else:
                kwargs[key] = value
        return cls(
            streams_dir=Path(cfg.get("streams_dir") or DEFAULT_CONFIG["streams_dir"]),
            hls_base_path=str(cfg.get("hls_base_path") or "/hls").rstrip("/"),
            ffmpeg_path=cfg.get("ffmpeg_path") or "ffmpeg",
            **kwargs,
        )
