from __future__ import annotations

"""Quick reachability probe for camera sources."""

import asyncio

import ffmpeg
from loguru import logger

from core.session import Protocol, detect_protocol
from utils.url import mask_credentials


def _probe(url: str, protocol: Protocol, timeout: float) -> dict:
    opts = {"rw_timeout": int(timeout * 1_000_000)}
    if protocol is Protocol.rtsp:
        opts["rtsp_transport"] = "tcp"
    return ffmpeg.probe(url, **opts)


async def check_camera_online(url: str, timeout: float = 5.0) -> bool:
    """Return ``True`` if ffprobe can read stream metadata within ``timeout``.

    Raises :class:`core.errors.InvalidStreamUrl` for unsupported URLs.
    """
    protocol = detect_protocol(url)
    try:
        info = await asyncio.wait_for(
            asyncio.to_thread(_probe, url, protocol, timeout), timeout=timeout + 1.0
        )
    except asyncio.TimeoutError:
        logger.info("probe timed out for {}", mask_credentials(url))
        return False
    except ffmpeg.Error as exc:
        stderr = exc.stderr.decode(errors="replace") if exc.stderr else str(exc)
        logger.info("probe failed for {}: {}", mask_credentials(url), mask_credentials(stderr.strip()))
        return False
    except (OSError, ValueError) as exc:
        logger.warning("probe could not run: {}", exc)
        return False
    return any(s.get("codec_type") == "video" for s in info.get("streams", []))
