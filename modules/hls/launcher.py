from __future__ import annotations

"""Spawn and reap the ffmpeg transcoder behind a stream session.

The launcher owns the argument vector, the subprocess handle and the two
helper tasks attached to it: one draining stderr into the session's
diagnostic tail and one waiting for the process to exit.  Exit is reported
as a :class:`core.events.SessionTerminated` event to a single callback; the
launcher never touches the registry itself.
"""

import asyncio
import shutil
from collections import deque
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Set

from loguru import logger

from config.settings import StreamSettings
from core.errors import LaunchError
from core.events import STREAM_EXIT, STREAM_START, SessionTerminated
from core.session import StreamSession
from modules.hls.quality import get_profile
from utils import logx
from utils.ffmpeg import build_hls_cmd
from utils.url import mask_credentials

SpawnFn = Callable[[list[str]], Awaitable[Any]]
ExitCallback = Callable[[SessionTerminated], None]


async def spawn_process(cmd: list[str]):
    """Start ``cmd`` with stderr piped and stdin/stdout detached."""
    return await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )


def prepare_stream_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def remove_stream_dir(path: Path) -> bool:
    """Delete a camera's output directory, logging rather than raising."""
    if not path.exists():
        return False
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.warning("failed to remove {}: {}", path, exc)
        # best effort: drop whatever files can be removed
        for child in path.glob("*"):
            try:
                child.unlink()
            except OSError:
                continue
        return False
    logger.debug("removed stream files in {}", path)
    return True


class ProcessLauncher:
    """Build and run transcoder processes for sessions."""

    def __init__(self, settings: StreamSettings, spawn: SpawnFn | None = None) -> None:
        self.settings = settings
        self._spawn = spawn or spawn_process
        self._tasks: Set[asyncio.Task] = set()

    def build_command(self, session: StreamSession) -> list[str]:
        s = self.settings
        return build_hls_cmd(
            s.ffmpeg_path,
            session.input_url,
            session.protocol,
            get_profile(session.quality),
            session.stream_dir,
            segment_seconds=s.segment_seconds,
            playlist_size=s.playlist_size,
            gop_size=s.gop_size,
            threads=s.encoder_threads,
            timeout_usec=s.rtsp_timeout_usec,
        )

    async def launch(self, session: StreamSession, on_exit: ExitCallback) -> Any:
        """Spawn the transcoder for ``session`` and attach exit handling.

        Raises :class:`LaunchError` when the process cannot be started.
        """
        prepare_stream_dir(session.stream_dir)
        cmd = self.build_command(session)
        logger.debug("[{}] ffmpeg cmd: {}", session.camera_id, mask_credentials(" ".join(cmd)))
        try:
            proc = await self._spawn(cmd)
        except (OSError, ValueError) as exc:
            raise LaunchError(f"failed to launch ffmpeg: {exc}") from exc
        session.process = proc
        session.stderr_tail = deque(maxlen=self.settings.stderr_tail_lines)
        logx.event(
            STREAM_START,
            camera_id=session.camera_id,
            pid=getattr(proc, "pid", None),
            protocol=session.protocol.value,
            quality=session.quality,
            url=session.input_url,
        )
        drain = None
        if getattr(proc, "stderr", None) is not None:
            drain = self._track(asyncio.create_task(self._drain_stderr(session, proc)))
        self._track(asyncio.create_task(self._watch_exit(session, proc, drain, on_exit)))
        return proc

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _drain_stderr(self, session: StreamSession, proc) -> None:
        """Keep the last stderr lines of ``proc`` on the session.

        The stream is captured at task start so a later handle replacement on
        the session cannot redirect reads.
        """
        stream = proc.stderr
        tail = session.stderr_tail
        try:
            while True:
                line = await stream.readline()
                if not line:
                    break
                tail.append(mask_credentials(line.decode("utf-8", "replace").rstrip()))
        except (ValueError, OSError):
            pass

    async def _watch_exit(self, session: StreamSession, proc, drain, on_exit: ExitCallback) -> None:
        returncode = await proc.wait()
        if drain is not None:
            try:
                await asyncio.wait_for(drain, timeout=1.0)
            except asyncio.TimeoutError:
                pass
        tail = "\n".join(session.stderr_tail)
        log = logx.warn if returncode not in (0, None) else logx.event
        log(
            STREAM_EXIT,
            camera_id=session.camera_id,
            pid=getattr(proc, "pid", None),
            returncode=returncode,
            stderr_tail=tail,
        )
        event = SessionTerminated(
            camera_id=session.camera_id,
            session_id=session.session_id,
            process=proc,
            returncode=returncode,
            stderr_tail=tail,
        )
        try:
            on_exit(event)
        except Exception:
            logger.exception("[{}] exit handler failed", session.camera_id)

    async def terminate(self, proc, timeout: Optional[float] = None) -> Optional[int]:
        """Stop ``proc`` and wait until it has exited.

        ``terminate`` is tried first; a process still alive after ``timeout``
        seconds is killed.
        """
        if proc is None:
            return None
        if proc.returncode is not None:
            return proc.returncode
        timeout = self.settings.stop_timeout if timeout is None else timeout
        try:
            proc.terminate()
        except ProcessLookupError:
            pass
        try:
            return await asyncio.wait_for(proc.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("ffmpeg pid {} ignored SIGTERM; killing", getattr(proc, "pid", None))
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        return await proc.wait()

    async def close(self) -> None:
        """Cancel helper tasks still attached to exited or abandoned processes."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
