from pathlib import Path

from core.session import Protocol
from modules.hls.quality import get_profile
from utils.ffmpeg import build_hls_cmd, build_input_args, build_snapshot_cmd


def _opt(cmd, flag):
    return cmd[cmd.index(flag) + 1]


def test_rtsp_input_forced_to_tcp_with_timeout():
    args = build_input_args("rtsp://h/a", Protocol.rtsp, 10_000_000)
    assert args == ["-rtsp_transport", "tcp", "-timeout", "10000000", "-i", "rtsp://h/a"]


def test_rtmp_input_has_no_transport_override():
    assert build_input_args("rtmp://h/a", Protocol.rtmp, 10_000_000) == ["-i", "rtmp://h/a"]


def test_hls_command_uses_profile_and_window(tmp_path):
    out = tmp_path / "cam1"
    cmd = build_hls_cmd(
        "ffmpeg", "rtsp://h/a", Protocol.rtsp, get_profile("high"), out, timeout_usec=10_000_000
    )
    assert cmd[0] == "ffmpeg"
    assert _opt(cmd, "-c:v") == "libx264"
    assert _opt(cmd, "-preset") == "superfast"
    assert _opt(cmd, "-crf") == "28"
    assert _opt(cmd, "-maxrate") == "1500k"
    assert _opt(cmd, "-bufsize") == "3000k"
    assert _opt(cmd, "-s") == "1280x720"
    assert _opt(cmd, "-r") == "15"
    assert _opt(cmd, "-g") == "30"
    assert _opt(cmd, "-hls_time") == "2"
    assert _opt(cmd, "-hls_list_size") == "3"
    assert _opt(cmd, "-hls_flags") == "delete_segments"
    assert _opt(cmd, "-hls_segment_filename") == str(out / "segment%03d.ts")
    assert "-an" in cmd
    assert cmd[-1] == str(out / "stream.m3u8")


def test_snapshot_command_writes_single_frame():
    cmd = build_snapshot_cmd("ff", "rtmp://h/a", Protocol.rtmp, Path("/tmp/x/segment001.jpg"))
    assert _opt(cmd, "-frames:v") == "1"
    assert cmd[-1] == "/tmp/x/segment001.jpg"
    assert "-rtsp_transport" not in cmd
