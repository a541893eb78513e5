"""Shared FastAPI dependencies."""

from copet.redis_client import get_redis as _get_redis


def get_optional_redis() -> object | None:
    """Redis client, or None when it is not initialized.

    Post-commit publishing is best effort, so services accept a missing client.
    """
    try:
        return _get_redis()
    except RuntimeError:
        return None
