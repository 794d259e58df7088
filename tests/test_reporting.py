import fakeredis
from redis.exceptions import ConnectionError as RedisConnectionError

from modules.hls.reporting import RedisStatusReporter


def test_online_status_published():
    r = fakeredis.FakeRedis(decode_responses=True)
    RedisStatusReporter(r)("cam1", True, "/hls/cam1/stream.m3u8")
    data = r.hgetall("camera:cam1")
    assert data["status"] == "online"
    assert data["hls_url"] == "/hls/cam1/stream.m3u8"
    assert data["stream_status"] == "ACTIVE"
    assert data["updated_at"]


def test_offline_status_clears_url():
    r = fakeredis.FakeRedis(decode_responses=True)
    reporter = RedisStatusReporter(r)
    reporter("cam1", True, "/hls/cam1/stream.m3u8")
    reporter("cam1", False)
    data = r.hgetall("camera:cam1")
    assert data["status"] == "offline"
    assert data["hls_url"] == ""
    assert data["stream_status"] == "INACTIVE"


def test_redis_errors_are_logged_not_raised():
    class Broken:
        def hset(self, *a, **k):
            raise RedisConnectionError("down")

    RedisStatusReporter(Broken())("cam1", False)
