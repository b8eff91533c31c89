"""Shared Redis client for the API process.

The API uses Redis only for per-IP rate limit counters; the arq worker opens
its own connection from ``RedisSettings``. Running without Redis is allowed:
the rate limiter passes requests through and ``/ready`` reports it.
"""

from __future__ import annotations

import redis.asyncio as redis
from redis.exceptions import RedisError

_client: redis.Redis | None = None


async def init_redis(url: str, *, max_connections: int = 50) -> None:
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Raises RuntimeError when the API was started without Redis."""
    if _client is None:
        msg = "Redis not initialized"
        raise RuntimeError(msg)
    return _client


async def redis_status() -> str:
    """"ok", "not initialized", or "error: <reason>" for the readiness probe."""
    if _client is None:
        return "not initialized"
    try:
        await _client.ping()
    except (RedisError, OSError) as exc:
        return f"error: {exc}"
    return "ok"
