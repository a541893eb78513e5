"""Redis connection pool and best-effort event publishing."""

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client (FastAPI dependency)."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


def couple_channel(couple_id: int) -> str:
    """Pub/sub channel both partners' clients subscribe to."""
    return f"ws:couple:{couple_id}"


async def publish_event(redis_client: object, channel: str, event: str, data: dict[str, Any]) -> bool:
    """Publish a realtime event after commit.

    Delivery is best effort: the committed state is already authoritative,
    so a failed publish is logged and reported as False, never raised.
    """
    if redis_client is None:
        return False
    try:
        await redis_client.publish(  # type: ignore[attr-defined]
            channel,
            json.dumps({"type": event, "data": data}, default=str),
        )
    except Exception:
        logger.warning("Failed to publish %s on %s", event, channel, exc_info=True)
        return False
    return True
