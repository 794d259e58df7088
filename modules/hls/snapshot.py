from __future__ import annotations

"""Degraded HLS output built from periodic still frames.

Used only when the transcoder fails to produce a manifest in time.  Every
``interval`` seconds one JPEG is captured from the source and the playlist is
rewritten to list the newest ``window`` images; older images are deleted.
"""

import asyncio
from collections import deque
from functools import partial
from pathlib import Path
from typing import Awaitable, Callable, Deque, Optional

from loguru import logger

from core.session import Protocol
from modules.hls.playlist import render_playlist, write_atomic
from utils.ffmpeg_snapshot import capture_snapshot
from utils.logx import log_throttled

CaptureFn = Callable[[str, Path], Awaitable[bool]]


class SnapshotStream:
    """Interval-driven snapshot playlist generator for one camera."""

    def __init__(
        self,
        camera_id: str,
        input_url: str,
        protocol: Protocol,
        out_dir: Path,
        *,
        interval: float = 3.0,
        window: int = 3,
        capture: CaptureFn | None = None,
        ffmpeg_path: str = "ffmpeg",
        capture_timeout: float = 10.0,
    ) -> None:
        self.camera_id = camera_id
        self.input_url = input_url
        self.protocol = protocol
        self.out_dir = out_dir
        self.interval = interval
        self.window = window
        self._capture = capture or partial(
            _ffmpeg_capture, protocol=protocol, ffmpeg_path=ffmpeg_path, timeout=capture_timeout
        )
        self._segments: Deque[str] = deque()
        self._sequence = 0
        self._media_sequence = 0
        self._task: Optional[asyncio.Task] = None
        self.captures = 0
        self.failures = 0

    @property
    def manifest_path(self) -> Path:
        return self.out_dir / "stream.m3u8"

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def segments(self) -> list[str]:
        return list(self._segments)

    def start(self) -> None:
        """Write the initial empty playlist and begin capturing."""
        self.out_dir.mkdir(parents=True, exist_ok=True)
        self._write_playlist()
        self._task = asyncio.create_task(self._run(), name=f"snapshot:{self.camera_id}")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.capture_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[{}] snapshot capture failed", self.camera_id)

    async def capture_once(self) -> bool:
        """Capture one frame and roll the playlist window forward."""
        name = f"segment{self._sequence:03d}.jpg"
        self._sequence += 1
        path = self.out_dir / name
        ok = await self._capture(self.input_url, path)
        if not ok or not path.exists():
            self.failures += 1
            log_throttled(
                logger.warning,
                f"[{self.camera_id}] snapshot capture produced no frame",
                key=f"snapshot:{self.camera_id}",
                interval=30,
            )
            return False
        self.captures += 1
        self._segments.append(name)
        while len(self._segments) > self.window:
            old = self._segments.popleft()
            self._media_sequence += 1
            try:
                (self.out_dir / old).unlink()
            except FileNotFoundError:
                pass
        self._write_playlist()
        return True

    def _write_playlist(self) -> None:
        content = render_playlist(
            self._segments,
            media_sequence=self._media_sequence,
            target_duration=max(1, round(self.interval)),
        )
        write_atomic(self.manifest_path, content)


async def _ffmpeg_capture(
    url: str, output: Path, *, protocol: Protocol, ffmpeg_path: str, timeout: float
) -> bool:
    return await capture_snapshot(
        url, output, protocol=protocol, ffmpeg_path=ffmpeg_path, timeout=timeout
    )
