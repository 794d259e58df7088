from __future__ import annotations

"""Concurrency-safe map from camera id to its active :class:`StreamSession`."""

import asyncio
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Iterator, List, Optional

from core.session import StreamSession


@dataclass
class _CameraLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SessionRegistry:
    """Single source of truth for which cameras are streaming.

    The map itself is guarded by a short-held :class:`threading.Lock` around
    insert/remove/lookup.  Whole camera operations (start, stop, reconnect,
    quality switch) are serialized separately through :meth:`camera_lock`, so
    unrelated cameras never wait on each other.  A camera's lock entry is
    dropped once nobody holds or waits on it and no session is registered.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, StreamSession] = {}
        self._camera_locks: Dict[str, _CameraLock] = {}
        self._lock = threading.Lock()

    @asynccontextmanager
    async def camera_lock(self, camera_id: str) -> AsyncIterator[None]:
        """Hold the lock serializing operations for ``camera_id``."""
        with self._lock:
            entry = self._camera_locks.get(camera_id)
            if entry is None:
                entry = self._camera_locks[camera_id] = _CameraLock()
            entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                if (
                    entry.users == 0
                    and camera_id not in self._sessions
                    and self._camera_locks.get(camera_id) is entry
                ):
                    del self._camera_locks[camera_id]

    def is_busy(self, camera_id: str) -> bool:
        """Return ``True`` while an operation holds or waits on the camera's lock."""
        with self._lock:
            entry = self._camera_locks.get(camera_id)
            return bool(entry and entry.users)

    def tracked_locks(self) -> List[str]:
        with self._lock:
            return list(self._camera_locks)

    def get(self, camera_id: str) -> Optional[StreamSession]:
        with self._lock:
            return self._sessions.get(camera_id)

    def add(self, session: StreamSession) -> None:
        """Insert ``session``; the caller must have stopped any previous one."""
        with self._lock:
            current = self._sessions.get(session.camera_id)
            if current is not None and current is not session:
                raise RuntimeError(f"session already registered for {session.camera_id}")
            self._sessions[session.camera_id] = session

    def remove(
        self, camera_id: str, expected: StreamSession | None = None
    ) -> Optional[StreamSession]:
        """Remove and return the session for ``camera_id``.

        When ``expected`` is given the entry is only removed if it is that very
        session, which lets late exit notifications from a replaced process
        leave the newer session untouched.
        """
        with self._lock:
            current = self._sessions.get(camera_id)
            if current is None:
                return None
            if expected is not None and current is not expected:
                return None
            removed = self._sessions.pop(camera_id)
            entry = self._camera_locks.get(camera_id)
            if entry is not None and entry.users == 0:
                del self._camera_locks[camera_id]
            return removed

    def sessions(self) -> List[StreamSession]:
        """Return a point-in-time copy of all sessions."""
        with self._lock:
            return list(self._sessions.values())

    def camera_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, camera_id: object) -> bool:
        with self._lock:
            return camera_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __iter__(self) -> Iterator[StreamSession]:
        return iter(self.sessions())
