"""Optional Redis client.

Redis only backs the API-wide per-IP rate limiter. An empty
``CTF_REDIS_URL`` disables it and the service runs on the database alone.
"""

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()


def create_redis(url: str) -> redis.Redis | None:
    """Create a pooled client, or None when ``url`` is empty."""
    if not url:
        logger.info("redis_disabled")
        return None
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis(client: redis.Redis | None) -> None:
    """Close the connection pool if one was created."""
    if client is not None:
        await client.aclose()
