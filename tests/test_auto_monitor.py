import asyncio

from core.session import Protocol, StreamStatus
from modules.hls.auto_monitor import AutoMonitor, choose_source_url, config_camera_source
from schemas.stream import CameraSource


def test_choose_source_prefers_rtsp():
    cam = CameraSource.model_validate(
        {"id": 1, "rtspUrl": "rtsp://h/a", "rtmpUrl": "rtmp://h/b"}
    )
    assert choose_source_url(cam) == ("rtsp://h/a", Protocol.rtsp)
    cam = CameraSource.model_validate({"id": 1, "rtspUrl": "  ", "rtmpUrl": "rtmp://h/b"})
    assert choose_source_url(cam) == ("rtmp://h/b", Protocol.rtmp)
    assert choose_source_url(CameraSource.model_validate({"id": 1})) == (None, None)


def test_run_once_starts_keeps_and_reports(make_manager, spawner):
    reports = []
    cameras = [
        {"id": "a", "rtspUrl": "rtsp://h/a", "quality": "low"},
        {"cameraId": "b", "rtmpUrl": "rtmp://h/b"},
        {"id": "c"},
        {"id": "../etc"},
    ]

    async def run():
        manager = make_manager()
        monitor = AutoMonitor(manager, lambda: cameras, lambda *a: reports.append(a))
        first = await monitor.run_once()
        a_proc = manager.registry.get("a").process
        second = await monitor.run_once()
        a_after = manager.registry.get("a").process
        quality = manager.registry.get("a").quality
        await manager.close()
        return first, second, a_proc, a_after, quality

    first, second, a_proc, a_after, quality = asyncio.run(run())
    assert first == {"a": "started", "b": "started", "c": "no_url"}
    assert second == {"a": "kept", "b": "kept", "c": "no_url"}
    assert a_proc is a_after
    assert quality == "low"
    assert ("a", True, "/hls/a/stream.m3u8") in reports
    assert ("c", False, None) in reports
    assert len(spawner.calls) == 2


def test_parked_camera_not_started(make_manager, spawner, settings):
    settings.max_retries = 0
    settings.park_cooldown = 60
    reports = []

    async def run():
        manager = make_manager()
        await manager.start_stream("a", "rtsp://h/a")
        await manager.reconnect.handle_failure("a", "no_segments")
        monitor = AutoMonitor(
            manager, lambda: [{"id": "a", "rtspUrl": "rtsp://h/a"}], lambda *a: reports.append(a)
        )
        actions = await monitor.run_once()
        await manager.close()
        return actions

    assert asyncio.run(run()) == {"a": "parked"}
    assert reports == [("a", False, None)]
    assert len(spawner.calls) == 1


def test_failed_start_reported_offline(make_manager, spawner):
    spawner.mode = "die"
    reports = []

    async def run():
        manager = make_manager()

        async def discover():
            return [{"id": "a", "rtspUrl": "rtsp://h/a"}]

        monitor = AutoMonitor(manager, discover, lambda *a: reports.append(a))
        actions = await monitor.run_once()
        await manager.close()
        return actions

    assert asyncio.run(run()) == {"a": "failed"}
    assert reports == [("a", False, None)]


def test_quality_switch_in_progress_is_left_alone(make_manager, spawner, settings):
    settings.quality_switch_delay = 0.2
    reports = []

    async def run():
        manager = make_manager()
        await manager.start_stream("a", "rtsp://h/a", "low")
        monitor = AutoMonitor(
            manager,
            lambda: [{"id": "a", "rtspUrl": "rtsp://h/a", "quality": "low"}],
            lambda *a: reports.append(a),
        )
        switch = asyncio.create_task(manager.change_quality("a", "high"))
        await asyncio.sleep(0.05)
        actions = await monitor.run_once()
        switched = await switch
        session = manager.registry.get("a")
        await manager.close()
        return actions, switched, session

    actions, switched, session = asyncio.run(run())
    assert actions == {"a": "in_transition"}
    assert switched["success"]
    assert session.quality == "high"
    assert reports == []
    assert len(spawner.calls) == 2


def test_starting_session_not_reported_online(make_manager, spawner):
    reports = []

    async def run():
        manager = make_manager()
        await manager.start_stream("a", "rtsp://h/a")
        manager.registry.get("a").status = StreamStatus.starting
        monitor = AutoMonitor(
            manager, lambda: [{"id": "a", "rtspUrl": "rtsp://h/a"}], lambda *a: reports.append(a)
        )
        actions = await monitor.run_once()
        await manager.close()
        return actions

    assert asyncio.run(run()) == {"a": "in_transition"}
    assert reports == []
    assert len(spawner.calls) == 1


def test_config_camera_source_skips_disabled():
    cfg = {"cameras": [{"id": 1, "rtspUrl": "rtsp://h"}, {"id": 2, "enabled": False}]}
    assert config_camera_source(cfg)() == [{"id": 1, "rtspUrl": "rtsp://h"}]
