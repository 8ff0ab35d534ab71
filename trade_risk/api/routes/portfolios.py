"""Portfolio endpoints.

Provides:
- POST /portfolios        -- open an empty portfolio for a user
- GET  /portfolios/{id}   -- portfolio with positions (cached)
- GET  /portfolios        -- paginated portfolio list
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from trade_risk.api.auth import Role, require_role, resolve_user_id
from trade_risk.api.deps import get_cache, get_portfolio_service
from trade_risk.api.schemas.trade_schemas import (
    APIEnvelope,
    PortfolioCreateRequest,
    PortfolioResponse,
)
from trade_risk.cache import PortfolioCache
from trade_risk.core.enums import CacheScope
from trade_risk.engine import PortfolioService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/portfolios", tags=["Portfolios"])


@router.post("", response_model=APIEnvelope[PortfolioResponse], status_code=201)
def create_portfolio(
    body: PortfolioCreateRequest,
    service: PortfolioService = Depends(get_portfolio_service),
    user: dict = Depends(require_role(Role.TRADER)),
):
    """Create the (single) portfolio of a user."""
    user_id = resolve_user_id(user, body.user_id)
    portfolio = service.create(user_id)
    return APIEnvelope(data=PortfolioResponse(**portfolio))


@router.get("/{portfolio_id}", response_model=APIEnvelope[PortfolioResponse])
def get_portfolio(
    portfolio_id: int,
    service: PortfolioService = Depends(get_portfolio_service),
    cache: PortfolioCache = Depends(get_cache),
    user: dict = Depends(require_role(Role.VIEWER)),
):
    """Return a portfolio, served from cache when fresh."""
    cached = cache.get(CacheScope.PORTFOLIO, portfolio_id)
    if cached is not None:
        return APIEnvelope(data=PortfolioResponse(**cached), meta={"cached": True})

    response = PortfolioResponse(**service.get(portfolio_id))
    cache.set(CacheScope.PORTFOLIO, portfolio_id, response.model_dump(mode="json"))
    return APIEnvelope(data=response, meta={"cached": False})


@router.get("", response_model=APIEnvelope[list[PortfolioResponse]])
def list_portfolios(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    service: PortfolioService = Depends(get_portfolio_service),
    user: dict = Depends(require_role(Role.VIEWER)),
):
    result = service.list(page=page, size=size)
    return APIEnvelope(
        data=[PortfolioResponse(**p) for p in result.items],
        meta=result.meta(),
    )
