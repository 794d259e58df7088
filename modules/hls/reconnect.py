from __future__ import annotations

"""Bounded automatic reconnection with park-and-cooldown after exhaustion.

Every camera moves between three states (see :mod:`core.retry_state`):
``stable`` while healthy, ``retrying`` after an unhealthy verdict or a
process exit, ``parked`` once ``consecutive_failures`` exceeds the retry
ceiling.  A parked camera is removed from the registry and gets exactly one
deferred fresh start after the cooldown.
"""

import asyncio
import inspect
import time
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from config.settings import StreamSettings
from core.errors import StreamError
from core.events import STREAM_PARKED, STREAM_RECONNECT
from core.retry_state import RetryState
from core.session import StreamSession
from utils import logx

Reporter = Callable[[str, bool, Optional[str]], Any]


async def notify(reporter: Reporter | None, camera_id: str, online: bool, hls_url: str | None) -> None:
    """Forward a camera status to ``reporter``; failures are only logged."""
    if reporter is None:
        return
    try:
        res = reporter(camera_id, online, hls_url)
        if inspect.isawaitable(res):
            await res
    except Exception:
        logger.exception("[{}] status report failed", camera_id)


class ReconnectionController:
    """Per-camera retry state machine driving stop/relaunch cycles.

    ``manager`` is the :class:`core.stream_manager.StreamManager` owning the
    registry; relaunches go through its lock-free internals while this
    controller holds the camera lock.
    """

    def __init__(self, manager, settings: StreamSettings, reporter: Reporter | None = None) -> None:
        self.manager = manager
        self.settings = settings
        self.reporter = reporter
        self._states: Dict[str, RetryState] = {}
        self._active: Dict[str, asyncio.Task] = {}
        self._deferred: Dict[str, asyncio.Task] = {}

    def state(self, camera_id: str) -> RetryState:
        return self._states.setdefault(camera_id, RetryState())

    def in_progress(self, camera_id: str) -> bool:
        task = self._active.get(camera_id)
        return task is not None and not task.done()

    def is_parked(self, camera_id: str) -> bool:
        st = self._states.get(camera_id)
        return bool(st and st.parked)

    def parked_cameras(self) -> List[str]:
        return [cam for cam, st in self._states.items() if st.parked]

    def mark_stable(self, camera_id: str) -> None:
        st = self.state(camera_id)
        if not st.parked:
            st.record_stable()

    def forget(self, camera_id: str) -> None:
        """Drop the retry state of a stopped camera unless it is parked."""
        st = self._states.get(camera_id)
        if st is not None and not st.parked:
            del self._states[camera_id]

    def schedule(
        self,
        camera_id: str,
        reason: str,
        orphan: StreamSession | None = None,
        judged: StreamSession | None = None,
    ) -> asyncio.Task:
        """Run :meth:`handle_failure` in the background, once per camera."""
        task = self._active.get(camera_id)
        if task is not None and not task.done():
            return task
        task = asyncio.create_task(
            self.handle_failure(camera_id, reason, orphan=orphan, judged=judged),
            name=f"reconnect:{camera_id}",
        )
        self._active[camera_id] = task
        task.add_done_callback(lambda t, cam=camera_id: self._forget(cam, t))
        return task

    def _forget(self, camera_id: str, task: asyncio.Task) -> None:
        if self._active.get(camera_id) is task:
            del self._active[camera_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error("[{}] reconnection crashed: {}", camera_id, task.exception())

    async def drain(self) -> None:
        """Wait for all in-flight reconnection attempts."""
        while self._active:
            await asyncio.gather(*list(self._active.values()), return_exceptions=True)

    async def handle_failure(
        self,
        camera_id: str,
        reason: str,
        orphan: StreamSession | None = None,
        judged: StreamSession | None = None,
    ) -> str:
        """React to one failure of ``camera_id``.

        ``orphan`` is the record of a session whose process already exited and
        was removed from the registry; it is used when no newer session has
        taken its place.  ``judged`` is the session a health verdict was made
        against; the failure is dropped if another session replaced it while
        this task waited for the camera lock.  Returns ``"skipped"``,
        ``"reconnected"``, ``"failed"`` or ``"parked"``.
        """
        registry = self.manager.registry
        async with registry.camera_lock(camera_id):
            current = registry.get(camera_id)
            if orphan is not None:
                if current is not None:
                    return "skipped"
                session = orphan
            elif current is None or (judged is not None and current is not judged):
                return "skipped"
            else:
                session = current

            session.consecutive_failures += 1
            session.last_failure = time.time()
            st = self.state(camera_id)
            if st.should_park(session.consecutive_failures, self.settings.max_retries):
                await self._park(session, st, reason)
                return "parked"

            st.record_retry()
            logx.warn(
                STREAM_RECONNECT,
                camera_id=camera_id,
                attempt=session.consecutive_failures,
                max_retries=self.settings.max_retries,
                reason=reason,
            )
            await self.manager._stop_session(camera_id)
            await asyncio.sleep(self.settings.reconnect_delay)
            try:
                result = await self.manager._launch(
                    camera_id,
                    session.input_url,
                    session.quality,
                    protocol=session.protocol,
                    previous=session,
                )
            except StreamError as exc:
                logger.error("[{}] reconnection aborted: {}", camera_id, exc)
                return "failed"
            if not result.success:
                logger.error("[{}] reconnection failed: {}", camera_id, result.error)
                return "failed"
            fresh = registry.get(camera_id)
            if fresh is not None:
                fresh.restart_count += 1
                fresh.last_reconnection = time.time()
            logger.info(
                "[{}] reconnected ({}/{}) mode={}",
                camera_id,
                session.consecutive_failures,
                self.settings.max_retries,
                result.mode,
            )
            return "reconnected"

    async def _park(self, session: StreamSession, st: RetryState, reason: str) -> None:
        camera_id = session.camera_id
        cooldown = self.settings.park_cooldown
        st.record_park(cooldown)
        logx.error(
            STREAM_PARKED,
            camera_id=camera_id,
            failures=session.consecutive_failures,
            cooldown=cooldown,
            reason=reason,
        )
        await self.manager._stop_session(camera_id)
        await notify(self.reporter, camera_id, False, None)
        self._cancel_deferred(camera_id)
        self._deferred[camera_id] = asyncio.create_task(
            self._deferred_retry(camera_id, session.input_url, session.quality),
            name=f"parked:{camera_id}",
        )

    async def _deferred_retry(self, camera_id: str, input_url: str, quality: str) -> None:
        await asyncio.sleep(self.settings.park_cooldown)
        if self._deferred.get(camera_id) is asyncio.current_task():
            del self._deferred[camera_id]
        self.state(camera_id).record_stable()
        logger.info("[{}] cooldown elapsed; retrying stream", camera_id)
        try:
            result = await self.manager.start_stream(camera_id, input_url, quality)
        except StreamError as exc:
            logger.error("[{}] deferred retry rejected: {}", camera_id, exc)
            await notify(self.reporter, camera_id, False, None)
            return
        await notify(
            self.reporter, camera_id, result.success, result.hls_url if result.success else None
        )

    def _cancel_deferred(self, camera_id: str) -> bool:
        task = self._deferred.pop(camera_id, None)
        if task is None or task is asyncio.current_task():
            return False
        task.cancel()
        return True

    def cancel(self, camera_id: str) -> None:
        """Drop any pending deferred retry; used by explicit start/stop."""
        if self._cancel_deferred(camera_id):
            logger.info("[{}] pending deferred retry cancelled", camera_id)
        st = self._states.get(camera_id)
        if st is not None and st.parked:
            st.record_stable()

    async def close(self) -> None:
        tasks = list(self._active.values()) + list(self._deferred.values())
        self._deferred.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("reconnection task failed during shutdown")
