"""Redis client singleton for the offline notification mailbox."""

import logging
from typing import Any

from redis.asyncio import Redis

from src.core.config import get_settings

logger = logging.getLogger(__name__)

# Global singleton instance
_redis_client: Redis | None = None


def get_redis() -> Redis:
    """Get or create the global async Redis client.

    The client connects lazily on first command, so creating it never
    blocks startup when Redis is unavailable.

    Returns:
        Redis: Async Redis client returning decoded strings.
    """
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
    return _redis_client


async def init_redis() -> Redis:
    """Initialize the Redis client. Call at app startup."""
    client = get_redis()
    try:
        await client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        # The mailbox is an accelerator; notifications are still persisted.
        logger.warning("Redis unavailable at startup: %s", str(e))
    return client


async def shutdown_redis() -> None:
    """Close the Redis client. Call at app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")


async def check_redis_connection() -> dict[str, Any]:
    """Check if the Redis connection is healthy.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        await get_redis().ping()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
