"""Configuration constants for the streaming worker."""

import os

# Timings and thresholds used by the HLS orchestrator.  Every value can be
# overridden from ``config.json`` (``streaming`` section) or the environment.
STREAMING_DEFAULTS = {
    "default_quality": "medium",
    # transcoder output
    "segment_seconds": 2,
    "playlist_size": 3,
    "gop_size": 30,
    "encoder_threads": 2,
    "rtsp_timeout_usec": 10_000_000,
    "stderr_tail_lines": 20,
    "stop_timeout": 5.0,
    # readiness
    "readiness_interval": 0.5,
    "readiness_attempts": 20,
    # snapshot fallback
    "snapshot_interval": 3.0,
    "snapshot_window": 3,
    "snapshot_timeout": 10.0,
    # health
    "health_interval": 30.0,
    "stale_after": 10.0,
    "min_segment_bytes": 1000,
    # reconnection
    "max_retries": 5,
    "reconnect_delay": 2.0,
    "quality_switch_delay": 2.0,
    "restart_delay": 2.0,
    "park_cooldown": 300.0,
    "reconnect_on_exit": True,
    # discovery
    "auto_monitor_initial_delay": 10.0,
    "auto_monitor_interval": 120.0,
    "probe_timeout": 5.0,
}

# Environment variable names mapped to ``streaming`` keys
STREAMING_ENV = {
    "HLS_DEFAULT_QUALITY": "default_quality",
    "HLS_READINESS_ATTEMPTS": "readiness_attempts",
    "HLS_HEALTH_INTERVAL": "health_interval",
    "HLS_STALE_AFTER": "stale_after",
    "HLS_MIN_SEGMENT_BYTES": "min_segment_bytes",
    "HLS_MAX_RETRIES": "max_retries",
    "HLS_RECONNECT_DELAY": "reconnect_delay",
    "HLS_PARK_COOLDOWN": "park_cooldown",
    "HLS_AUTO_MONITOR_INTERVAL": "auto_monitor_interval",
}

DEFAULT_CONFIG = {
    "streams_dir": os.getenv("HLS_STREAMS_DIR", "streams"),
    "hls_base_path": "/hls",
    "ffmpeg_path": os.getenv("FFMPEG_PATH", "ffmpeg"),
    "redis_url": os.getenv("REDIS_URL", ""),
    "log_level": "INFO",
    "auto_monitor": True,
    "cameras": [],
    "streaming": STREAMING_DEFAULTS.copy(),
}
