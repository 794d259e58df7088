from __future__ import annotations

"""Argument builders for the ffmpeg invocations used by the worker."""

from pathlib import Path

from core.session import Protocol


def build_input_args(url: str, protocol: Protocol, timeout_usec: int | None = None) -> list[str]:
    """Return protocol specific input options followed by ``-i url``.

    RTSP sources are forced onto TCP with a connect timeout; RTMP needs no
    transport override.
    """
    args: list[str] = []
    if protocol is Protocol.rtsp:
        args += ["-rtsp_transport", "tcp"]
        if timeout_usec:
            args += ["-timeout", str(timeout_usec)]
    args += ["-i", url]
    return args


def build_hls_cmd(
    ffmpeg_path: str,
    url: str,
    protocol: Protocol,
    profile,
    out_dir: Path,
    *,
    segment_seconds: int = 2,
    playlist_size: int = 3,
    gop_size: int = 30,
    threads: int = 2,
    timeout_usec: int | None = None,
) -> list[str]:
    """Return the ffmpeg command transcoding ``url`` into an HLS playlist."""
    cmd = [ffmpeg_path, "-hide_banner", "-nostdin", "-loglevel", "warning"]
    cmd += build_input_args(url, protocol, timeout_usec)
    cmd += [
        "-c:v",
        "libx264",
        "-preset",
        profile.preset,
        "-crf",
        str(profile.crf),
        "-maxrate",
        profile.maxrate,
        "-bufsize",
        profile.bufsize,
        "-g",
        str(gop_size),
        "-r",
        str(profile.framerate),
        "-s",
        profile.resolution,
        "-threads",
        str(threads),
        "-an",
        "-f",
        "hls",
        "-hls_time",
        str(segment_seconds),
        "-hls_list_size",
        str(playlist_size),
        "-hls_flags",
        "delete_segments",
        "-hls_segment_filename",
        str(out_dir / "segment%03d.ts"),
        "-y",
        str(out_dir / "stream.m3u8"),
    ]
    return cmd


def build_snapshot_cmd(
    ffmpeg_path: str,
    url: str,
    protocol: Protocol,
    output: Path,
    timeout_usec: int | None = None,
) -> list[str]:
    """Return ffmpeg command capturing a single JPEG frame into ``output``."""
    cmd = [ffmpeg_path, "-hide_banner", "-nostdin", "-loglevel", "error"]
    cmd += build_input_args(url, protocol, timeout_usec)
    cmd += ["-an", "-frames:v", "1", "-f", "image2", "-y", str(output)]
    return cmd
