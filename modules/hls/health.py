from __future__ import annotations

"""Filesystem based health checks for active stream sessions."""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from loguru import logger

from config.settings import StreamSettings
from core.events import STREAM_UNHEALTHY
from core.registry import SessionRegistry
from core.session import StreamSession
from modules.hls.playlist import parse_segments
from utils import logx


@dataclass(frozen=True)
class HealthReport:
    camera_id: str
    healthy: bool
    reason: str = "ok"
    segment: Optional[str] = None
    segment_bytes: int = 0


def check_session(
    session: StreamSession,
    *,
    stale_after: float = 10.0,
    min_segment_bytes: int = 1000,
    now: Optional[float] = None,
) -> HealthReport:
    """Judge ``session`` from its process handle and on-disk output.

    Any one of these marks the session unhealthy: the process (or snapshot
    task) is gone, the manifest is missing, the manifest is older than
    ``stale_after`` seconds, it lists no segments, or its newest segment is
    missing or smaller than ``min_segment_bytes``.
    """
    cam = session.camera_id
    now = time.time() if now is None else now
    if not session.has_live_handle():
        return HealthReport(cam, False, "process_exited")
    manifest = session.manifest_path
    try:
        stat = manifest.stat()
    except FileNotFoundError:
        return HealthReport(cam, False, "manifest_missing")
    age = now - stat.st_mtime
    if age > stale_after:
        return HealthReport(cam, False, f"manifest_stale:{age:.1f}s")
    try:
        segments = parse_segments(manifest.read_text(errors="replace"))
    except OSError as exc:
        return HealthReport(cam, False, f"manifest_unreadable:{exc}")
    if not segments:
        return HealthReport(cam, False, "no_segments")
    last = segments[-1]
    try:
        size = (session.stream_dir / last).stat().st_size
    except FileNotFoundError:
        return HealthReport(cam, False, "segment_missing", segment=last)
    if size < min_segment_bytes:
        return HealthReport(cam, False, "segment_too_small", segment=last, segment_bytes=size)
    return HealthReport(cam, True, segment=last, segment_bytes=size)


class HealthMonitor:
    """Recurring sweep classifying every registered session.

    Healthy sessions get their failure counter reset; unhealthy ones are
    handed to the reconnection controller, which runs them in the
    background so one slow camera never delays the sweep of the others.
    Cameras with an operation in progress (start, stop, quality switch,
    reconnection) are skipped until the next sweep.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        controller,
        settings: StreamSettings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.controller = controller
        self.settings = settings
        self.clock = clock
        self.sweeps = 0

    def sweep(self) -> List[HealthReport]:
        """Check every session once and dispatch unhealthy ones."""
        reports: List[HealthReport] = []
        sessions = self.registry.sessions()
        logger.debug("health sweep over {} stream(s)", len(sessions))
        for session in sessions:
            cam = session.camera_id
            if self.registry.is_busy(cam) or self.controller.in_progress(cam):
                continue
            try:
                report = check_session(
                    session,
                    stale_after=self.settings.stale_after,
                    min_segment_bytes=self.settings.min_segment_bytes,
                    now=self.clock(),
                )
            except Exception as exc:
                logger.exception("[{}] health check failed", cam)
                report = HealthReport(cam, False, f"check_error:{exc}")
            session.last_health_check = self.clock()
            reports.append(report)
            try:
                if report.healthy:
                    session.consecutive_failures = 0
                    self.controller.mark_stable(cam)
                else:
                    logx.warn(STREAM_UNHEALTHY, camera_id=cam, reason=report.reason)
                    self.controller.schedule(cam, report.reason, judged=session)
            except Exception:
                logger.exception("[{}] failed to dispatch health verdict", cam)
        self.sweeps += 1
        return reports

    async def run(self) -> None:
        """Sweep forever every ``health_interval`` seconds."""
        logger.info("health monitor started (every {}s)", self.settings.health_interval)
        while True:
            await asyncio.sleep(self.settings.health_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("health sweep failed")
