"""
Redis client module - Upstash Redis singleton.

Carts live in Upstash Redis, reached over its REST API.
"""

import os
from typing import Optional

from upstash_redis.asyncio import Redis as AsyncRedis

from rediscart.errors import ConfigError, ERROR_REDIS_NOT_CONFIGURED


# Singleton instance
_redis_client: Optional[AsyncRedis] = None


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN

    Raises:
        ConfigError: If either variable is unset
    """
    global _redis_client

    if _redis_client is None:
        # Read at call time so entrypoints can set the environment late
        url = os.environ.get("UPSTASH_REDIS_REST_URL", "")
        token = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")
        if not url or not token:
            raise ConfigError(ERROR_REDIS_NOT_CONFIGURED)
        _redis_client = AsyncRedis(url=url, token=token)

    return _redis_client


def reset_redis() -> None:
    """Drop the cached client (after credentials change)."""
    global _redis_client
    _redis_client = None
