"""Shared pytest fixtures for stream worker tests."""

# ruff: noqa: E402

import asyncio
import itertools
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from config.settings import StreamSettings
from core.stream_manager import StreamManager

SEGMENT_BYTES = 2000
_pids = itertools.count(4000)


class FakeProcess:
    """Stand-in for an asyncio subprocess handle."""

    def __init__(self, *, ignore_term: bool = False) -> None:
        self.pid = next(_pids)
        self.returncode = None
        self.stderr = None
        self.ignore_term = ignore_term
        self.terminated = False
        self.killed = False
        self._exited = asyncio.Event()

    def exit(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self._exited.set()

    def terminate(self) -> None:
        self.terminated = True
        if not self.ignore_term:
            self.exit(-15)

    def kill(self) -> None:
        self.killed = True
        self.exit(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


def write_hls_output(out_dir: Path, segment_bytes: int = SEGMENT_BYTES) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    (out_dir / "segment000.ts").write_bytes(b"\x47" * segment_bytes)
    (out_dir / "stream.m3u8").write_text(
        "#EXTM3U\n#EXT-X-TARGETDURATION:2\n#EXTINF:2.0,\nsegment000.ts\n"
    )


class FakeSpawner:
    """Spawn function recording commands and simulating ffmpeg behaviour.

    ``mode`` is one of ``"produce"`` (writes a playlist and a segment),
    ``"silent"`` (never writes anything), ``"die"`` (exits with code 1
    straight away) or ``"fail"`` (cannot be started at all).
    """

    def __init__(self, mode: str = "produce") -> None:
        self.mode = mode
        self.calls: list[list[str]] = []
        self.processes: list[FakeProcess] = []

    async def __call__(self, cmd: list[str]) -> FakeProcess:
        self.calls.append(cmd)
        if self.mode == "fail":
            raise FileNotFoundError("ffmpeg")
        proc = FakeProcess()
        self.processes.append(proc)
        if self.mode == "produce":
            write_hls_output(Path(cmd[-1]).parent)
        elif self.mode == "die":
            proc.exit(1)
        return proc

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


async def fake_capture(url: str, path: Path) -> bool:
    path.write_bytes(b"\xff\xd8" + b"\x00" * SEGMENT_BYTES)
    return True


@pytest.fixture
def settings(tmp_path) -> StreamSettings:
    return StreamSettings(
        streams_dir=tmp_path / "streams",
        readiness_interval=0.01,
        readiness_attempts=5,
        snapshot_interval=0.01,
        stop_timeout=0.1,
        reconnect_delay=0,
        quality_switch_delay=0,
        restart_delay=0,
        park_cooldown=0.05,
        health_interval=0.01,
    )


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def make_manager(settings, spawner):
    """Return a factory building a manager wired to the fake spawner.

    The manager must be built inside the running event loop of the test.
    """

    def _make(**kwargs) -> StreamManager:
        kwargs.setdefault("spawn", spawner)
        kwargs.setdefault("snapshot_capture", fake_capture)
        return StreamManager(settings, **kwargs)

    return _make
