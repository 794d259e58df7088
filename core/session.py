from __future__ import annotations

"""In-memory record describing one camera's ingest session."""

import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Deque, Optional

from core.errors import ConfigurationError, InvalidStreamUrl


class Protocol(str, Enum):
    """Supported camera ingest protocols."""

    rtsp = "RTSP"
    rtmp = "RTMP"


class StreamMode(str, Enum):
    """How the HLS output is being produced."""

    transcode = "transcode"
    snapshot = "snapshot-fallback"


class StreamStatus(str, Enum):
    """Lifecycle status of a session."""

    starting = "starting"
    running = "running"
    stopped = "stopped"


def detect_protocol(url: str | None) -> Protocol:
    """Return the ingest protocol for ``url`` or raise :class:`InvalidStreamUrl`."""
    if not url or not url.strip():
        raise InvalidStreamUrl("stream URL is required")
    lowered = url.strip().lower()
    if lowered.startswith("rtsp://"):
        return Protocol.rtsp
    if lowered.startswith("rtmp://"):
        return Protocol.rtmp
    raise InvalidStreamUrl("URL must start with rtsp:// or rtmp://")


@dataclass
class StreamSession:
    """State tracked for a single camera while its stream is active.

    Attributes
    ----------
    process:
        Transcoder process handle while ``mode`` is ``transcode``.
    snapshot:
        Snapshot generator handle while ``mode`` is ``snapshot-fallback``.
    consecutive_failures:
        Unhealthy verdicts since the last confirmed-healthy check.
    restart_count:
        Lifetime number of relaunches, carried across reconnections.
    """

    camera_id: str
    input_url: str
    protocol: Protocol
    quality: str
    stream_dir: Path
    hls_url: str
    mode: StreamMode = StreamMode.transcode
    status: StreamStatus = StreamStatus.starting
    process: Any = None
    snapshot: Any = None
    start_time: float = field(default_factory=time.time)
    last_health_check: Optional[float] = None
    last_failure: Optional[float] = None
    last_reconnection: Optional[float] = None
    consecutive_failures: int = 0
    restart_count: int = 0
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    stderr_tail: Deque[str] = field(default_factory=lambda: deque(maxlen=20))

    @property
    def manifest_path(self) -> Path:
        return self.stream_dir / "stream.m3u8"

    @property
    def uptime(self) -> float:
        return max(0.0, time.time() - self.start_time)

    def has_live_handle(self) -> bool:
        """Return ``True`` while the process or snapshot task is still running."""
        if self.mode is StreamMode.snapshot:
            return self.snapshot is not None and self.snapshot.running
        return self.process is not None and self.process.returncode is None

    def carry_from(self, previous: "StreamSession") -> None:
        """Inherit diagnostic counters from the session this one replaces."""
        self.consecutive_failures = previous.consecutive_failures
        self.restart_count = previous.restart_count
        self.last_failure = previous.last_failure
        self.last_reconnection = previous.last_reconnection
        self.last_health_check = previous.last_health_check

    def to_status(self) -> dict:
        return {
            "active": True,
            "cameraId": self.camera_id,
            "status": self.status.value,
            "mode": self.mode.value,
            "quality": self.quality,
            "protocol": self.protocol.value,
            "uptime": round(self.uptime, 3),
            "startTime": self.start_time,
            "hlsUrl": self.hls_url,
            "restartCount": self.restart_count,
            "consecutiveFailures": self.consecutive_failures,
            "lastHealthCheck": self.last_health_check,
            "lastFailure": self.last_failure,
            "lastReconnection": self.last_reconnection,
        }


def validate_camera_id(camera_id) -> str:
    """Return ``camera_id`` as a string safe to use as a directory name."""
    cam = str(camera_id).strip() if camera_id is not None else ""
    if not cam or "/" in cam or "\\" in cam or cam in {".", ".."}:
        raise ConfigurationError(f"invalid camera id: {camera_id!r}")
    return cam
