"""Redis client singleton for the Trade Risk service.

Provides a module-level singleton Redis client backed by a ConnectionPool.
The pool lifecycle is managed independently from the client so closing the
client never tears down a pool still referenced elsewhere.

Usage::

    from trade_risk.core.redis import get_redis, close_redis

    redis = get_redis()
    redis.set("key", "value")
    value = redis.get("key")

    # During application shutdown:
    close_redis()
"""

import redis

from .config import settings

# Module-level globals -- singleton pattern
_redis_pool: redis.ConnectionPool | None = None
_redis_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """Get the singleton Redis client.

    Creates the connection pool and client on first call. Subsequent calls
    return the same client instance. The pool uses ``decode_responses=True``
    so all values are returned as strings (important for caching JSON).
    """
    global _redis_pool, _redis_client
    if _redis_client is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            decode_responses=True,
        )
        _redis_client = redis.Redis(connection_pool=_redis_pool)
    return _redis_client


def close_redis() -> None:
    """Close Redis client and pool. Call during application shutdown.

    Safe to call multiple times. After calling, ``get_redis()`` will create
    a fresh client on next invocation.
    """
    global _redis_pool, _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None
    if _redis_pool is not None:
        _redis_pool.disconnect()
        _redis_pool = None
