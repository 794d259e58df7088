from __future__ import annotations

"""Bounded wait for a freshly launched transcoder to publish its manifest."""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Callable

from loguru import logger


class Readiness(str, Enum):
    """Outcome of :func:`wait_for_manifest`."""

    ready = "ready"
    gone = "gone"
    timeout = "timeout"


def manifest_ready(path: Path) -> bool:
    """Return ``True`` once ``path`` exists and holds some content."""
    try:
        return path.stat().st_size > 0
    except OSError:
        return False


async def wait_for_manifest(
    path: Path,
    still_active: Callable[[], bool],
    *,
    interval: float = 0.5,
    attempts: int = 20,
) -> Readiness:
    """Poll for ``path`` every ``interval`` seconds, at most ``attempts`` times.

    ``still_active`` reports whether the session is still registered; once it
    returns ``False`` the process died before producing output and the wait
    ends with :attr:`Readiness.gone`.
    """
    for attempt in range(1, attempts + 1):
        await asyncio.sleep(interval)
        if manifest_ready(path):
            logger.debug("manifest {} ready after {} attempt(s)", path, attempt)
            return Readiness.ready
        if not still_active():
            return Readiness.gone
    if manifest_ready(path):
        return Readiness.ready
    return Readiness.timeout
