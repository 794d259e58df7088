from __future__ import annotations

import asyncio
from pathlib import Path

from loguru import logger

from core.session import Protocol
from utils.ffmpeg import build_snapshot_cmd
from utils.url import mask_credentials


async def capture_snapshot(
    url: str,
    output: Path,
    *,
    protocol: Protocol,
    ffmpeg_path: str = "ffmpeg",
    timeout: float = 10.0,
    timeout_usec: int | None = None,
) -> bool:
    """Write a single JPEG frame from ``url`` to ``output``.

    Returns ``True`` when ffmpeg exits cleanly and the file exists. A capture
    exceeding ``timeout`` seconds is killed and reported as a failure.
    """
    cmd = build_snapshot_cmd(ffmpeg_path, url, protocol, output, timeout_usec)
    logger.debug("snapshot cmd: {}", mask_credentials(" ".join(cmd)))
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning("snapshot capture timed out after {}s", timeout)
        return False
    if proc.returncode != 0:
        logger.debug(
            "snapshot capture failed rc={} {}",
            proc.returncode,
            mask_credentials(stderr.decode(errors="replace").strip()),
        )
        return False
    return output.exists()
