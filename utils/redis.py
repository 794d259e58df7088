"""Redis connection helper for status publishing."""

import os
from typing import Optional

import redis as redis_sync
from loguru import logger
from redis.exceptions import RedisError

from config import config as shared_config
from utils.url import mask_credentials


def get_sync_client(url: Optional[str] = None) -> redis_sync.Redis:
    """Return a connected synchronous client with ``str`` responses.

    The URL comes from the argument, then ``redis_url`` in the shared
    configuration, then ``REDIS_URL``.  The connection is checked with a
    ping so a wrong URL fails at startup rather than on the first status
    write.
    """
    url = url or shared_config.get("redis_url") or os.getenv("REDIS_URL")
    if not url:
        raise RedisError("no Redis URL configured")
    try:
        client = redis_sync.Redis.from_url(url, decode_responses=True, socket_timeout=5)
        client.ping()
    except (RedisError, OSError) as e:
        logger.error("Failed to connect to Redis at {}: {}", mask_credentials(url), e)
        raise
    logger.info("connected to Redis at {}", mask_credentials(url))
    return client
