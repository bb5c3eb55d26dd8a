"""Redis client used for wallet nonces, token denylist and rate limiting."""

import redis.asyncio as redis

_client: redis.Redis | None = None


async def init_redis(url: str, timeout: float = 5.0) -> None:
    """Create the shared Redis client with bounded socket timeouts."""
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )


async def close_redis() -> None:
    """Close the Redis client and its pool."""
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Return the Redis client. Also used as a FastAPI dependency."""
    if _client is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _client
