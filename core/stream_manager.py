from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from config.settings import StreamSettings
from core.errors import InvalidQuality, LaunchError, NotFound
from core.events import QUALITY_CHANGE, STREAM_FALLBACK, STREAM_READY, STREAM_STOP, SessionTerminated
from core.registry import SessionRegistry
from core.session import (
    Protocol,
    StreamMode,
    StreamSession,
    StreamStatus,
    detect_protocol,
    validate_camera_id,
)
from modules.hls.health import HealthMonitor
from modules.hls.launcher import ProcessLauncher, SpawnFn, remove_stream_dir
from modules.hls.probe import check_camera_online
from modules.hls.quality import available_qualities, get_profile, is_known_quality
from modules.hls.readiness import Readiness, wait_for_manifest
from modules.hls.reconnect import ReconnectionController, Reporter
from modules.hls.snapshot import CaptureFn, SnapshotStream
from utils import logx
from utils.url import hls_url, normalize_stream_url


@dataclass
class StartResult:
    """Outcome of a start request."""

    success: bool
    camera_id: str
    hls_url: Optional[str] = None
    mode: Optional[str] = None
    quality: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"success": self.success, "cameraId": self.camera_id}
        if self.success:
            data.update(hlsUrl=self.hls_url, mode=self.mode, quality=self.quality)
        else:
            data["error"] = self.error
        return data


class StreamManager:
    """Service layer for starting, stopping and supervising camera streams.

    Every operation that replaces or removes a camera's session runs under
    that camera's lock from the registry; the ``_stop_session`` and
    ``_launch`` internals assume the caller already holds it.
    """

    def __init__(
        self,
        settings: StreamSettings,
        *,
        registry: SessionRegistry | None = None,
        launcher: ProcessLauncher | None = None,
        spawn: SpawnFn | None = None,
        snapshot_capture: CaptureFn | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or SessionRegistry()
        self.launcher = launcher or ProcessLauncher(settings, spawn)
        self._snapshot_capture = snapshot_capture
        self.reconnect = ReconnectionController(self, settings, reporter)
        self.health = HealthMonitor(self.registry, self.reconnect, settings)
        self.started_at = time.time()
        self._closing = False

    # paths -----------------------------------------------------------------

    def stream_dir(self, camera_id: str) -> Path:
        return Path(self.settings.streams_dir) / camera_id

    def hls_url(self, camera_id: str) -> str:
        return hls_url(self.settings.hls_base_path, camera_id)

    # public operations -------------------------------------------------------

    async def start_stream(
        self,
        camera_id,
        input_url: str,
        quality: str | None = None,
        protocol: Protocol | str | None = None,
    ) -> StartResult:
        """Start (or restart) the HLS stream for ``camera_id``.

        Raises :class:`core.errors.InvalidStreamUrl` for unsupported URLs;
        launch problems are reported through the returned result.
        """
        cam = validate_camera_id(camera_id)
        proto = self._resolve_protocol(input_url, protocol)
        self.reconnect.cancel(cam)
        async with self.registry.camera_lock(cam):
            return await self._launch(cam, normalize_stream_url(input_url), quality, protocol=proto)

    async def stop_stream(self, camera_id) -> dict:
        """Stop ``camera_id``; stopping an inactive camera is a no-op success."""
        cam = validate_camera_id(camera_id)
        self.reconnect.cancel(cam)
        async with self.registry.camera_lock(cam):
            stopped = await self._stop_session(cam)
        self.reconnect.forget(cam)
        return {"success": True, "cameraId": cam, "stopped": stopped}

    async def restart_stream(self, camera_id, input_url: str | None = None) -> StartResult:
        """Stop and relaunch a stream, keeping its URL unless one is given."""
        cam = validate_camera_id(camera_id)
        if input_url:
            detect_protocol(input_url)
        self.reconnect.cancel(cam)
        async with self.registry.camera_lock(cam):
            session = self.registry.get(cam)
            url = input_url or (session.input_url if session else None)
            if not url:
                raise NotFound(f"no active stream for camera {cam}")
            quality = session.quality if session else None
            restarts = session.restart_count + 1 if session else 0
            logger.info("[{}] restarting stream", cam)
            await self._stop_session(cam)
            await asyncio.sleep(self.settings.restart_delay)
            return await self._launch(
                cam, normalize_stream_url(url), quality, restart_count=restarts
            )

    async def change_quality(self, camera_id, quality: str) -> dict:
        """Relaunch an active stream under a new quality tier.

        The HLS URL is unchanged; only the encode parameters differ.
        """
        cam = validate_camera_id(camera_id)
        if not is_known_quality(quality):
            raise InvalidQuality(f"unknown quality: {quality}")
        profile = get_profile(quality)
        async with self.registry.camera_lock(cam):
            session = self.registry.get(cam)
            if session is None:
                raise NotFound(f"no active stream for camera {cam}")
            logx.event(QUALITY_CHANGE, camera_id=cam, old=session.quality, new=quality)
            await self._stop_session(cam)
            await asyncio.sleep(self.settings.quality_switch_delay)
            result = await self._launch(
                cam,
                session.input_url,
                quality,
                protocol=session.protocol,
                restart_count=session.restart_count + 1,
            )
        if not result.success:
            return {
                "success": False,
                "cameraId": cam,
                "error": result.error or "failed to restart stream with new quality",
            }
        return {
            "success": True,
            "cameraId": cam,
            "quality": quality,
            "hlsUrl": result.hls_url,
            "mode": result.mode,
            "config": asdict(profile),
            "message": f"quality changed to {profile.description}",
        }

    def get_status(self, camera_id) -> dict:
        cam = validate_camera_id(camera_id)
        session = self.registry.get(cam)
        if session is None:
            return {
                "active": False,
                "cameraId": cam,
                "status": StreamStatus.stopped.value,
                "parked": self.reconnect.is_parked(cam),
            }
        return session.to_status()

    def list_streams(self) -> List[dict]:
        return [s.to_status() for s in self.registry.sessions()]

    def available_qualities(self) -> List[dict]:
        return available_qualities()

    def worker_status(self) -> dict:
        sessions = self.registry.sessions()
        return {
            "uptime": round(time.time() - self.started_at, 3),
            "activeStreams": len(sessions),
            "snapshotStreams": sum(1 for s in sessions if s.mode is StreamMode.snapshot),
            "parkedCameras": self.reconnect.parked_cameras(),
            "healthSweeps": self.health.sweeps,
        }

    async def check_camera_online(self, input_url: str) -> bool:
        return await check_camera_online(input_url, timeout=self.settings.probe_timeout)

    async def stop_all(self) -> int:
        """Stop every active stream; returns how many were stopped."""
        cams = self.registry.camera_ids()
        logger.info("stopping {} active stream(s)", len(cams))
        results = await asyncio.gather(
            *(self.stop_stream(cam) for cam in cams), return_exceptions=True
        )
        for cam, res in zip(cams, results):
            if isinstance(res, Exception):
                logger.error("[{}] stop failed: {}", cam, res)
        return sum(1 for r in results if isinstance(r, dict) and r.get("stopped"))

    async def close(self) -> None:
        self._closing = True
        await self.reconnect.close()
        await self.stop_all()
        await self.launcher.close()

    # internals (camera lock held by caller) ----------------------------------

    def _resolve_protocol(self, input_url: str, override: Protocol | str | None) -> Protocol:
        detected = detect_protocol(input_url)
        if override is None:
            return detected
        if isinstance(override, Protocol):
            return override
        return Protocol(str(override).upper())

    async def _launch(
        self,
        camera_id: str,
        input_url: str,
        quality: str | None,
        *,
        protocol: Protocol | None = None,
        previous: StreamSession | None = None,
        restart_count: int = 0,
    ) -> StartResult:
        protocol = protocol or detect_protocol(input_url)
        if not is_known_quality(quality):
            if quality:
                logger.warning(
                    "[{}] unknown quality {!r}; using {}",
                    camera_id,
                    quality,
                    self.settings.default_quality,
                )
            quality = get_profile(self.settings.default_quality).name

        if camera_id in self.registry:
            logger.info("[{}] stream already active; stopping it first", camera_id)
        await self._stop_session(camera_id)

        session = StreamSession(
            camera_id=camera_id,
            input_url=input_url,
            protocol=protocol,
            quality=quality,
            stream_dir=self.stream_dir(camera_id),
            hls_url=self.hls_url(camera_id),
        )
        if previous is not None:
            session.carry_from(previous)
        else:
            session.restart_count = restart_count
        self.registry.add(session)

        try:
            await self.launcher.launch(session, self._on_terminated)
        except LaunchError as exc:
            logger.error("[{}] {}", camera_id, exc)
            self.registry.remove(camera_id, expected=session)
            remove_stream_dir(session.stream_dir)
            return StartResult(False, camera_id, error=str(exc))

        outcome = await wait_for_manifest(
            session.manifest_path,
            lambda: self.registry.get(camera_id) is session,
            interval=self.settings.readiness_interval,
            attempts=self.settings.readiness_attempts,
        )
        if outcome is Readiness.ready and self.registry.get(camera_id) is session:
            session.status = StreamStatus.running
            logx.event(STREAM_READY, camera_id=camera_id, hls_url=session.hls_url)
            return self._result(session)
        if outcome is Readiness.gone or self.registry.get(camera_id) is not session:
            tail = "\n".join(session.stderr_tail)
            error = "transcoder exited before producing output"
            if tail:
                error = f"{error}: {tail.splitlines()[-1]}"
            logger.error("[{}] {}", camera_id, error)
            return StartResult(False, camera_id, error=error)

        await self._fallback(session)
        return self._result(session)

    def _result(self, session: StreamSession) -> StartResult:
        return StartResult(
            True,
            session.camera_id,
            hls_url=session.hls_url,
            mode=session.mode.value,
            quality=session.quality,
        )

    async def _fallback(self, session: StreamSession) -> None:
        """Replace a transcoder that never produced a manifest with snapshots."""
        logx.warn(
            STREAM_FALLBACK,
            camera_id=session.camera_id,
            waited=self.settings.readiness_interval * self.settings.readiness_attempts,
        )
        proc, session.process = session.process, None
        session.mode = StreamMode.snapshot
        try:
            await self.launcher.terminate(proc)
        except Exception:
            logger.exception("[{}] failed to stop stalled transcoder", session.camera_id)
        remove_stream_dir(session.stream_dir)
        snapshot = SnapshotStream(
            session.camera_id,
            session.input_url,
            session.protocol,
            session.stream_dir,
            interval=self.settings.snapshot_interval,
            window=self.settings.snapshot_window,
            capture=self._snapshot_capture,
            ffmpeg_path=self.settings.ffmpeg_path,
            capture_timeout=self.settings.snapshot_timeout,
        )
        session.snapshot = snapshot
        snapshot.start()
        session.status = StreamStatus.running

    async def _stop_session(self, camera_id: str) -> bool:
        session = self.registry.remove(camera_id)
        if session is None:
            remove_stream_dir(self.stream_dir(camera_id))
            return False
        session.status = StreamStatus.stopped
        try:
            if session.snapshot is not None:
                await session.snapshot.stop()
            if session.process is not None:
                await self.launcher.terminate(session.process)
        except Exception:
            logger.exception("[{}] error while stopping stream", camera_id)
        remove_stream_dir(session.stream_dir)
        logx.event(STREAM_STOP, camera_id=camera_id, uptime=round(session.uptime, 3))
        return True

    def _on_terminated(self, event: SessionTerminated) -> None:
        """Single consumer of process exit events.

        Removes the session and its files exactly once, and only if the
        registry still holds the session that owned the exited process.
        """
        session = self.registry.get(event.camera_id)
        if (
            session is None
            or session.session_id != event.session_id
            or session.process is not event.process
        ):
            return
        if self.registry.remove(event.camera_id, expected=session) is None:
            return
        was_running = session.status is StreamStatus.running
        session.status = StreamStatus.stopped
        remove_stream_dir(session.stream_dir)
        if not event.failed:
            logger.info("[{}] transcoder finished", event.camera_id)
            return
        logger.error("[{}] transcoder exited with code {}", event.camera_id, event.returncode)
        if was_running and self.settings.reconnect_on_exit and not self._closing:
            self.reconnect.schedule(
                event.camera_id, f"process_exited:{event.returncode}", orphan=session
            )
