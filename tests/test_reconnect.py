import asyncio

from core.retry_state import PARKED, STABLE, RetryState


def test_retry_state_parks_after_ceiling():
    st = RetryState()
    assert not st.should_park(5, 5)
    assert st.should_park(6, 5)
    st.record_retry()
    assert st.attempts == 1
    st.record_park(300)
    assert st.state == PARKED and st.parked
    assert st.retry_at - st.parked_at == 300
    st.record_stable()
    assert st.state == STABLE and st.attempts == 0


def test_failure_relaunches_and_carries_counters(make_manager, spawner):
    async def run():
        manager = make_manager()
        await manager.start_stream("cam1", "rtsp://h/a", "high")
        old = spawner.last
        outcome = await manager.reconnect.handle_failure("cam1", "manifest_stale:12.0s")
        session = manager.registry.get("cam1")
        await manager.close()
        return outcome, session, old

    outcome, session, old = asyncio.run(run())
    assert outcome == "reconnected"
    assert old.terminated
    assert session.quality == "high"
    assert session.consecutive_failures == 1
    assert session.restart_count == 1
    assert session.last_reconnection is not None
    assert session.last_failure is not None


def test_sixth_failure_parks_camera(make_manager, spawner, settings):
    settings.park_cooldown = 60
    reports = []

    async def run():
        manager = make_manager(reporter=lambda cam, online, url: reports.append((cam, online, url)))
        await manager.start_stream("cam1", "rtsp://h/a")
        outcomes = []
        for _ in range(6):
            outcomes.append(await manager.reconnect.handle_failure("cam1", "no_segments"))
        parked = manager.reconnect.is_parked("cam1")
        active = "cam1" in manager.registry
        await manager.close()
        return outcomes, parked, active

    outcomes, parked, active = asyncio.run(run())
    assert outcomes == ["reconnected"] * 5 + ["parked"]
    assert parked
    assert not active
    assert reports[-1] == ("cam1", False, None)
    # initial start plus five relaunches
    assert len(spawner.calls) == 6


def test_parked_camera_retried_after_cooldown(make_manager, spawner, settings):
    settings.max_retries = 0
    reports = []

    async def run():
        manager = make_manager(reporter=lambda cam, online, url: reports.append((cam, online, url)))
        await manager.start_stream("cam1", "rtsp://h/a")
        outcome = await manager.reconnect.handle_failure("cam1", "no_segments")
        await asyncio.sleep(settings.park_cooldown + 0.2)
        session = manager.registry.get("cam1")
        parked = manager.reconnect.is_parked("cam1")
        await manager.close()
        return outcome, session, parked

    outcome, session, parked = asyncio.run(run())
    assert outcome == "parked"
    assert session is not None
    assert not parked
    assert reports[-1] == ("cam1", True, "/hls/cam1/stream.m3u8")


def test_explicit_stop_cancels_deferred_retry(make_manager, spawner, settings):
    settings.max_retries = 0

    async def run():
        manager = make_manager()
        await manager.start_stream("cam1", "rtsp://h/a")
        await manager.reconnect.handle_failure("cam1", "no_segments")
        await manager.stop_stream("cam1")
        await asyncio.sleep(settings.park_cooldown + 0.2)
        active = "cam1" in manager.registry
        await manager.close()
        return active

    assert asyncio.run(run()) is False
    assert len(spawner.calls) == 1


def test_one_camera_failing_leaves_others_alone(make_manager, spawner):
    async def run():
        manager = make_manager()
        await manager.start_stream("cam1", "rtsp://h/1")
        await manager.start_stream("cam2", "rtsp://h/2")
        cam1_proc = manager.registry.get("cam1").process
        await manager.reconnect.handle_failure("cam2", "segment_too_small")
        cam1 = manager.registry.get("cam1")
        cam2 = manager.registry.get("cam2")
        await manager.close()
        return cam1_proc, cam1, cam2

    cam1_proc, cam1, cam2 = asyncio.run(run())
    assert cam1.process is cam1_proc
    assert cam1.restart_count == 0
    assert cam2.restart_count == 1


def test_unexpected_exit_triggers_reconnect(make_manager, spawner):
    async def run():
        manager = make_manager()
        await manager.start_stream("cam1", "rtsp://h/a")
        first = spawner.last
        first.exit(1)
        await asyncio.sleep(0.05)
        await manager.reconnect.drain()
        session = manager.registry.get("cam1")
        await manager.close()
        return first, session

    first, session = asyncio.run(run())
    assert session is not None
    assert session.process is not first
    assert session.consecutive_failures == 1
    assert len(spawner.calls) == 2


def test_failure_for_inactive_camera_is_skipped(make_manager):
    async def run():
        manager = make_manager()
        outcome = await manager.reconnect.handle_failure("ghost", "no_segments")
        await manager.close()
        return outcome

    assert asyncio.run(run()) == "skipped"


def test_verdict_for_replaced_session_is_skipped(make_manager, spawner):
    async def run():
        manager = make_manager()
        await manager.start_stream("cam1", "rtsp://h/a")
        judged = manager.registry.get("cam1")
        await manager.restart_stream("cam1")
        current = spawner.last
        outcome = await manager.reconnect.handle_failure("cam1", "no_segments", judged=judged)
        session = manager.registry.get("cam1")
        await manager.close()
        return outcome, session, current

    outcome, session, current = asyncio.run(run())
    assert outcome == "skipped"
    assert session.process is current
    assert session.consecutive_failures == 0
    assert len(spawner.calls) == 2


def test_stop_forgets_retry_state_and_camera_lock(make_manager):
    async def run():
        manager = make_manager()
        await manager.start_stream("cam1", "rtsp://h/a")
        await manager.reconnect.handle_failure("cam1", "no_segments")
        tracked = manager.registry.tracked_locks()
        retrying = "cam1" in manager.reconnect._states
        await manager.stop_stream("cam1")
        after = manager.registry.tracked_locks(), "cam1" in manager.reconnect._states
        await manager.close()
        return tracked, retrying, after

    tracked, retrying, after = asyncio.run(run())
    assert tracked == ["cam1"]
    assert retrying
    assert after == ([], False)
