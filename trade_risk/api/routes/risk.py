"""Risk endpoints.

Provides:
- GET /risk/{portfolio_id}           -- current risk (cached; computes and
                                        snapshots on a miss)
- GET /risk/{portfolio_id}/history   -- persisted snapshots, newest first
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from trade_risk.api.auth import Role, require_role
from trade_risk.api.deps import get_cache, get_risk_engine
from trade_risk.api.schemas.trade_schemas import APIEnvelope, RiskResponse
from trade_risk.cache import PortfolioCache
from trade_risk.core.enums import CacheScope
from trade_risk.engine import RiskEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/risk", tags=["Risk"])


@router.get("/{portfolio_id}", response_model=APIEnvelope[RiskResponse])
def get_risk(
    portfolio_id: int,
    engine: RiskEngine = Depends(get_risk_engine),
    cache: PortfolioCache = Depends(get_cache),
    user: dict = Depends(require_role(Role.VIEWER)),
):
    """Current risk metrics; a cache miss triggers a fresh calculation."""
    cached = cache.get(CacheScope.RISK, portfolio_id)
    if cached is not None:
        logger.debug("GET /risk/%s: cache hit", portfolio_id)
        return APIEnvelope(data=RiskResponse(**cached), meta={"cached": True})

    response = RiskResponse(**engine.calculate(portfolio_id))
    cache.set(CacheScope.RISK, portfolio_id, response.model_dump(mode="json"))
    return APIEnvelope(data=response, meta={"cached": False})


@router.get("/{portfolio_id}/history", response_model=APIEnvelope[list[RiskResponse]])
def get_risk_history(
    portfolio_id: int,
    start: Optional[datetime] = Query(None, description="Earliest snapshot (inclusive)"),
    end: Optional[datetime] = Query(None, description="Latest snapshot (inclusive)"),
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    engine: RiskEngine = Depends(get_risk_engine),
    user: dict = Depends(require_role(Role.VIEWER)),
):
    result = engine.history(portfolio_id, start=start, end=end, page=page, size=size)
    return APIEnvelope(
        data=[RiskResponse(**m) for m in result.items],
        meta=result.meta(),
    )
