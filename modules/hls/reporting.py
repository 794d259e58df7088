from __future__ import annotations

"""Default status reporter publishing camera state to Redis."""

from datetime import datetime, timezone
from typing import Optional

from loguru import logger
from redis.exceptions import RedisError


class RedisStatusReporter:
    """Write ``camera:{id}`` hashes consumed by the dashboard backend.

    Online cameras carry their HLS URL and an ``ACTIVE`` stream status;
    offline cameras clear the URL and are marked ``INACTIVE``.
    """

    def __init__(self, redis_client) -> None:
        self.redis = redis_client

    def __call__(self, camera_id: str, online: bool, hls_url: Optional[str] = None) -> None:
        mapping = {
            "status": "online" if online else "offline",
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if online and hls_url:
            mapping["hls_url"] = hls_url
            mapping["stream_status"] = "ACTIVE"
        elif not online:
            mapping["hls_url"] = ""
            mapping["stream_status"] = "INACTIVE"
        try:
            self.redis.hset(f"camera:{camera_id}", mapping=mapping)
        except RedisError:
            logger.exception(f"[{camera_id}] failed publishing status")
