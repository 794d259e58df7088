from __future__ import annotations

"""Recurring discovery sweep that keeps configured cameras streaming."""

import asyncio
import inspect
from typing import Any, Callable, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from core.session import Protocol, StreamStatus
from modules.hls.reconnect import Reporter, notify
from schemas.stream import CameraSource

DiscoverFn = Callable[[], Any]


def choose_source_url(cam: CameraSource) -> Tuple[Optional[str], Optional[Protocol]]:
    """Return the URL to ingest and its protocol, preferring RTSP over RTMP."""
    if cam.rtsp_url and cam.rtsp_url.strip():
        return cam.rtsp_url.strip(), Protocol.rtsp
    if cam.rtmp_url and cam.rtmp_url.strip():
        return cam.rtmp_url.strip(), Protocol.rtmp
    return None, None


class AutoMonitor:
    """Start sessions for discovered cameras and report their state.

    Cameras already streaming only get their online status refreshed; the
    loop never restarts or mutates an existing session.  A camera whose
    session is still starting, or that another operation (restart, quality
    switch, reconnection) is working on, is left for the next sweep.
    Parked cameras are reported offline and left alone until their cooldown
    elapses.
    """

    def __init__(
        self,
        manager,
        discover: DiscoverFn,
        reporter: Reporter | None = None,
        *,
        initial_delay: float = 10.0,
        interval: float = 120.0,
    ) -> None:
        self.manager = manager
        self.discover = discover
        self.reporter = reporter
        self.initial_delay = initial_delay
        self.interval = interval
        self.sweeps = 0

    async def _discover(self) -> List[CameraSource]:
        raw = self.discover()
        if inspect.isawaitable(raw):
            raw = await raw
        cams: List[CameraSource] = []
        for item in raw or []:
            try:
                cams.append(item if isinstance(item, CameraSource) else CameraSource.model_validate(item))
            except ValidationError as exc:
                logger.warning("skipping malformed camera entry {!r}: {}", item, exc.errors())
        return cams

    async def run_once(self) -> dict[str, str]:
        """Process every discovered camera once.

        Returns a mapping of camera id to the action taken (``"kept"``,
        ``"started"``, ``"failed"``, ``"no_url"``, ``"parked"``,
        ``"in_transition"`` or ``"error"``).
        """
        cams = await self._discover()
        logger.info("auto-monitor checking {} camera(s)", len(cams))
        results = await asyncio.gather(*(self._process(cam) for cam in cams))
        self.sweeps += 1
        return {cam.camera_id: action for cam, action in zip(cams, results)}

    async def _process(self, cam: CameraSource) -> str:
        cam_id = cam.camera_id
        try:
            session = self.manager.registry.get(cam_id)
            if session is not None and session.status is StreamStatus.running:
                await notify(self.reporter, cam_id, True, session.hls_url)
                return "kept"
            if session is not None or self._in_transition(cam_id):
                logger.debug("[{}] stream operation in progress; skipping", cam_id)
                return "in_transition"
            if self.manager.reconnect.is_parked(cam_id):
                await notify(self.reporter, cam_id, False, None)
                return "parked"
            url, protocol = choose_source_url(cam)
            if url is None:
                logger.warning("[{}] camera has no RTSP/RTMP URL configured", cam_id)
                await notify(self.reporter, cam_id, False, None)
                return "no_url"
            result = await self.manager.start_stream(
                cam_id, url, cam.quality or self.manager.settings.default_quality, protocol=protocol
            )
            if result.success:
                await notify(self.reporter, cam_id, True, result.hls_url)
                return "started"
            logger.warning("[{}] auto-start failed: {}", cam_id, result.error)
            await notify(self.reporter, cam_id, False, None)
            return "failed"
        except Exception as exc:
            logger.error("[{}] auto-monitor error: {}", cam_id, exc)
            await notify(self.reporter, cam_id, False, None)
            return "error"

    def _in_transition(self, cam_id: str) -> bool:
        return self.manager.registry.is_busy(cam_id) or self.manager.reconnect.in_progress(cam_id)

    async def run(self) -> None:
        """Sweep after ``initial_delay`` and then every ``interval`` seconds."""
        logger.info(
            "auto-monitor started (first sweep in {}s, then every {}s)",
            self.initial_delay,
            self.interval,
        )
        await asyncio.sleep(self.initial_delay)
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("auto-monitor sweep failed")
            await asyncio.sleep(self.interval)


def config_camera_source(cfg: dict) -> Callable[[], Iterable[dict]]:
    """Return a discovery callable reading the ``cameras`` list of ``cfg``."""

    def _cameras() -> Iterable[dict]:
        return [cam for cam in cfg.get("cameras", []) if cam.get("enabled", True)]

    return _cameras
