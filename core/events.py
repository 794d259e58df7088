"""Stream lifecycle events.

Event name constants are used for structured logs; :class:`SessionTerminated`
is the typed notification published when a transcoder process exits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

STREAM_START = "stream_start"
STREAM_READY = "stream_ready"
STREAM_FALLBACK = "stream_fallback"
STREAM_STOP = "stream_stop"
STREAM_EXIT = "stream_exit"
STREAM_UNHEALTHY = "stream_unhealthy"
STREAM_RECONNECT = "stream_reconnect"
STREAM_PARKED = "stream_parked"
QUALITY_CHANGE = "quality_change"

ALL_EVENTS = {
    STREAM_START,
    STREAM_READY,
    STREAM_FALLBACK,
    STREAM_STOP,
    STREAM_EXIT,
    STREAM_UNHEALTHY,
    STREAM_RECONNECT,
    STREAM_PARKED,
    QUALITY_CHANGE,
}


@dataclass(frozen=True)
class SessionTerminated:
    """A transcoder process owned by a session has exited."""

    camera_id: str
    session_id: str
    process: Any
    returncode: int | None
    stderr_tail: str = ""

    @property
    def failed(self) -> bool:
        return self.returncode not in (0, None)


__all__ = [
    "STREAM_START",
    "STREAM_READY",
    "STREAM_FALLBACK",
    "STREAM_STOP",
    "STREAM_EXIT",
    "STREAM_UNHEALTHY",
    "STREAM_RECONNECT",
    "STREAM_PARKED",
    "QUALITY_CHANGE",
    "ALL_EVENTS",
    "SessionTerminated",
]
