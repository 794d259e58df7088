import asyncio

import ffmpeg
import pytest

from core.errors import InvalidStreamUrl
from modules.hls import probe


def test_probe_reports_video_stream(monkeypatch):
    seen = {}

    def fake_probe(url, **kwargs):
        seen.update(kwargs, url=url)
        return {"streams": [{"codec_type": "audio"}, {"codec_type": "video"}]}

    monkeypatch.setattr(probe.ffmpeg, "probe", fake_probe)
    assert asyncio.run(probe.check_camera_online("rtsp://h/a", timeout=2.0)) is True
    assert seen["rtsp_transport"] == "tcp"
    assert seen["rw_timeout"] == 2_000_000


def test_probe_without_video_is_offline(monkeypatch):
    monkeypatch.setattr(probe.ffmpeg, "probe", lambda url, **kw: {"streams": [{"codec_type": "audio"}]})
    assert asyncio.run(probe.check_camera_online("rtmp://h/a")) is False


def test_probe_error_is_offline(monkeypatch):
    def fake_probe(url, **kwargs):
        raise ffmpeg.Error("ffprobe", b"", b"Connection refused")

    monkeypatch.setattr(probe.ffmpeg, "probe", fake_probe)
    assert asyncio.run(probe.check_camera_online("rtsp://h/a")) is False


def test_probe_rejects_unsupported_url():
    with pytest.raises(InvalidStreamUrl):
        asyncio.run(probe.check_camera_online("http://h/a"))
