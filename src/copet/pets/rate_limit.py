"""Per-user fixed-window limits on care actions and evolution checks.

Counters live in Redis so every API instance shares them. The window is
aligned to wall-clock multiples of its length, and ``Retry-After`` is the
time left in the current window.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Depends

from copet.auth.dependencies import get_current_user_id
from copet.config import get_settings
from copet.redis_client import get_redis
from copet.simulation.errors import RateLimitedError

logger = logging.getLogger(__name__)


async def hit(
    redis: Any,  # noqa: ANN401
    scope: str,
    user_id: int,
    limit: int,
    window_seconds: int,
    now: float | None = None,
) -> int:
    """Count one operation; raise RateLimitedError once ``limit`` is exceeded.

    Returns the number of operations left in the window.
    """
    now_s = int(now if now is not None else time.time())
    window = now_s // window_seconds
    key = f"ratelimit:{scope}:{user_id}:{window}"

    pipe = redis.pipeline()
    pipe.incr(key)
    pipe.expire(key, window_seconds + 1)
    results: list[Any] = await pipe.execute()
    count: int = results[0]

    if count > limit:
        retry_after = window_seconds - (now_s % window_seconds)
        logger.info("User %s exceeded %s limit (%s/%s)", user_id, scope, count, limit)
        raise RateLimitedError(
            f"Too many {scope} requests. Try again in {retry_after} seconds.",
            retry_after=retry_after,
        )
    return limit - count


def user_rate_limit(scope: str) -> Callable[..., Coroutine[Any, Any, int]]:
    """FastAPI dependency enforcing the configured limit for ``scope``.

    ``scope`` is ``"care"`` or ``"evolution"``. Resolves to the acting user id.
    """

    async def _dependency(user_id: int = Depends(get_current_user_id)) -> int:
        settings = get_settings()
        limit = getattr(settings, f"{scope}_rate_limit")
        window = getattr(settings, f"{scope}_rate_window_seconds")
        try:
            redis = get_redis()
        except RuntimeError:
            # Redis not initialized: limits are skipped
            return user_id
        await hit(redis, scope, user_id, limit, window)
        return user_id

    return _dependency
