"""Redis caching layer for portfolio, risk and instrument reads.

The trade engine never reads from this cache; it only invalidates the
affected scopes after a commit. Route handlers use it as a read-through
cache in front of the engine.

TTL tiers (matched to data volatility):
- Portfolio:     600 seconds
- Risk metrics:  300 seconds
- Instruments:  3600 seconds

Key layout: ``trade_risk:<scope>:<key>``. Instrument pages are stored
under ``trade_risk:instruments-list:<page>:<size>`` so clearing the
instruments scope drops them too.

Usage::

    from trade_risk.cache import get_portfolio_cache

    cache = get_portfolio_cache()
    risk = cache.get(CacheScope.RISK, portfolio_id)
    if risk is None:
        risk = engine.calculate(portfolio_id)
        cache.set(CacheScope.RISK, portfolio_id, risk)
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis

from trade_risk.core.config import settings
from trade_risk.core.enums import CacheScope

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Default TTLs (seconds) -- tiered by data volatility
# ---------------------------------------------------------------------------
TTL_PORTFOLIO = settings.cache_ttl_portfolio
TTL_RISK = settings.cache_ttl_risk
TTL_INSTRUMENTS = settings.cache_ttl_instruments

# Key prefix for all cache entries
KEY_PREFIX = "trade_risk:"

_TTL_BY_SCOPE = {
    CacheScope.PORTFOLIO: TTL_PORTFOLIO,
    CacheScope.RISK: TTL_RISK,
    CacheScope.INSTRUMENTS: TTL_INSTRUMENTS,
}


def make_key(scope: CacheScope | str, key: Any) -> str:
    return f"{KEY_PREFIX}{CacheScope(scope).value}:{key}"


class PortfolioCache:
    """Redis-backed cache keyed by scope.

    Every operation is best-effort: Redis errors are logged and treated as
    a miss (reads) or a no-op (writes and invalidations).

    Parameters
    ----------
    redis_client : redis.Redis
        A Redis client instance (from ``trade_risk.core.redis.get_redis``).
    """

    def __init__(self, redis_client: redis.Redis) -> None:
        self._redis = redis_client

    # ------------------------------------------------------------------
    # Generic scope access
    # ------------------------------------------------------------------
    def get(self, scope: CacheScope | str, key: Any) -> Optional[dict]:
        """Retrieve a cached value, or ``None`` on miss."""
        return self._get(make_key(scope, key))

    def set(
        self,
        scope: CacheScope | str,
        key: Any,
        data: dict,
        ttl: Optional[int] = None,
    ) -> None:
        """Cache *data* under *scope*/*key* with the scope's default TTL."""
        if ttl is None:
            ttl = _TTL_BY_SCOPE[CacheScope(scope)]
        self._set(make_key(scope, key), data, ttl)

    # ------------------------------------------------------------------
    # Instrument pages -- share the instruments TTL
    # ------------------------------------------------------------------
    def get_instrument_page(self, page: int, size: int) -> Optional[dict]:
        return self._get(f"{KEY_PREFIX}instruments-list:{page}:{size}")

    def set_instrument_page(self, page: int, size: int, data: dict) -> None:
        self._set(f"{KEY_PREFIX}instruments-list:{page}:{size}", data, TTL_INSTRUMENTS)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------
    def invalidate(self, scope: CacheScope | str, key: Any) -> None:
        """Delete one entry, e.g. the portfolio or risk view of a portfolio."""
        full_key = make_key(scope, key)
        try:
            self._redis.delete(full_key)
            logger.debug("PortfolioCache INVALIDATE: %s", full_key)
        except Exception:
            logger.warning("PortfolioCache: invalidate failed for %s", full_key, exc_info=True)

    def invalidate_all(self, scope: CacheScope | str) -> None:
        """Delete every key of *scope* (pattern scan)."""
        pattern = f"{KEY_PREFIX}{CacheScope(scope).value}*"
        try:
            cursor = 0
            deleted = 0
            while True:
                cursor, keys = self._redis.scan(cursor=cursor, match=pattern, count=100)
                if keys:
                    self._redis.delete(*keys)
                    deleted += len(keys)
                if cursor == 0:
                    break
            logger.debug("PortfolioCache: cleared %d keys for %s", deleted, pattern)
        except Exception:
            logger.warning("PortfolioCache: invalidate_all failed for %s", pattern, exc_info=True)

    def ping(self) -> bool:
        """True when Redis answers PING."""
        try:
            return bool(self._redis.ping())
        except Exception:
            logger.warning("PortfolioCache: PING failed", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _get(self, key: str) -> Optional[dict]:
        """GET a JSON-serialized value from Redis. Returns None on miss or error."""
        try:
            raw = self._redis.get(key)
            if raw is None:
                logger.debug("PortfolioCache MISS: %s", key)
                return None
            logger.debug("PortfolioCache HIT: %s", key)
            return json.loads(raw)
        except Exception:
            logger.warning("PortfolioCache: GET failed for %s", key, exc_info=True)
            return None

    def _set(self, key: str, data: dict, ttl: int) -> None:
        """SET a JSON-serialized value in Redis with EX (seconds)."""
        try:
            raw = json.dumps(data, default=str)
            self._redis.set(key, raw, ex=ttl)
            logger.debug("PortfolioCache SET: %s (ttl=%ds)", key, ttl)
        except Exception:
            logger.warning("PortfolioCache: SET failed for %s", key, exc_info=True)
