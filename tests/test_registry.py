import asyncio
from pathlib import Path

import pytest

from core.errors import ConfigurationError, InvalidStreamUrl
from core.registry import SessionRegistry
from core.session import Protocol, StreamSession, detect_protocol, validate_camera_id


def _session(cam="cam1"):
    return StreamSession(
        camera_id=cam,
        input_url="rtsp://h/a",
        protocol=Protocol.rtsp,
        quality="medium",
        stream_dir=Path("/tmp") / cam,
        hls_url=f"/hls/{cam}/stream.m3u8",
    )


def test_add_get_remove():
    reg = SessionRegistry()
    s = _session()
    reg.add(s)
    assert reg.get("cam1") is s
    assert "cam1" in reg and len(reg) == 1
    assert reg.remove("cam1") is s
    assert reg.get("cam1") is None
    assert reg.remove("cam1") is None


def test_add_refuses_second_session():
    reg = SessionRegistry()
    reg.add(_session())
    with pytest.raises(RuntimeError):
        reg.add(_session())


def test_remove_expected_ignores_newer_session():
    reg = SessionRegistry()
    old, new = _session(), _session()
    reg.add(new)
    assert reg.remove("cam1", expected=old) is None
    assert reg.get("cam1") is new


def test_camera_lock_marks_busy():
    reg = SessionRegistry()

    async def run():
        async with reg.camera_lock("cam1"):
            busy = reg.is_busy("cam1")
        return busy, reg.is_busy("cam1"), reg.is_busy("cam2"), reg.tracked_locks()

    assert asyncio.run(run()) == (True, False, False, [])


def test_camera_lock_serializes_and_is_dropped_with_session():
    reg = SessionRegistry()
    order = []

    async def worker(name):
        async with reg.camera_lock("cam1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    async def run():
        await asyncio.gather(worker("a"), worker("b"))
        async with reg.camera_lock("cam1"):
            reg.add(_session())
        kept = reg.tracked_locks()
        reg.remove("cam1")
        return kept, reg.tracked_locks()

    kept, after = asyncio.run(run())
    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert kept == ["cam1"]
    assert after == []


def test_detect_protocol():
    assert detect_protocol("rtsp://h/a") is Protocol.rtsp
    assert detect_protocol(" RTMP://h/live ") is Protocol.rtmp
    for bad in (None, "", "http://h/a", "file:///etc/passwd"):
        with pytest.raises(InvalidStreamUrl):
            detect_protocol(bad)


def test_validate_camera_id():
    assert validate_camera_id(7) == "7"
    for bad in ("", "..", "a/b", None):
        with pytest.raises(ConfigurationError):
            validate_camera_id(bad)


def test_carry_from_keeps_counters():
    old, new = _session(), _session()
    old.consecutive_failures = 3
    old.restart_count = 2
    old.last_failure = 10.0
    new.carry_from(old)
    assert (new.consecutive_failures, new.restart_count, new.last_failure) == (3, 2, 10.0)
    assert new.session_id != old.session_id
