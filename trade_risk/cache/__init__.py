"""Cache package for the Trade Risk service.

Exports:
- ``PortfolioCache`` -- Redis-backed read cache with per-scope TTLs
- ``get_portfolio_cache`` -- FastAPI dependency returning a PortfolioCache instance
"""

from trade_risk.cache.portfolio_cache import PortfolioCache
from trade_risk.core.redis import get_redis


def get_portfolio_cache() -> PortfolioCache:
    """FastAPI dependency that returns a :class:`PortfolioCache` instance.

    Usage in route handlers::

        @router.get("/some-endpoint")
        def handler(cache: PortfolioCache = Depends(get_portfolio_cache)):
            ...
    """
    return PortfolioCache(get_redis())


__all__ = ["PortfolioCache", "get_portfolio_cache"]
