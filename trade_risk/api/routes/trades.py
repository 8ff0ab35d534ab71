"""Trade endpoints.

Provides:
- POST /trades   -- execute a BUY or SELL against the caller's portfolio
- GET  /trades   -- paginated trade history (newest first)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from trade_risk.api.auth import Role, require_role, resolve_user_id
from trade_risk.api.deps import get_trade_executor, get_trade_history
from trade_risk.api.schemas.trade_schemas import APIEnvelope, TradeRequest, TradeResponse
from trade_risk.engine import TradeExecutor, TradeHistory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trades", tags=["Trades"])


# ---------------------------------------------------------------------------
# 1. POST /trades
# ---------------------------------------------------------------------------
@router.post("", response_model=APIEnvelope[TradeResponse], status_code=201)
def execute_trade(
    body: TradeRequest,
    executor: TradeExecutor = Depends(get_trade_executor),
    user: dict = Depends(require_role(Role.TRADER)),
):
    """Execute a trade; the position, valuation and trade row commit together."""
    user_id = resolve_user_id(user, body.user_id)
    logger.info(
        "POST /trades: user=%s %s %s x%s",
        user_id, body.side.value, body.instrument_id, body.quantity,
    )
    trade = executor.execute(
        user_id=user_id,
        instrument_id=body.instrument_id,
        quantity=body.quantity,
        price=body.price,
        side=body.side,
    )
    return APIEnvelope(data=TradeResponse(**trade))


# ---------------------------------------------------------------------------
# 2. GET /trades
# ---------------------------------------------------------------------------
@router.get("", response_model=APIEnvelope[list[TradeResponse]])
def list_trades(
    instrument_id: Optional[int] = Query(None, description="Filter by instrument"),
    portfolio_id: Optional[int] = Query(None, description="Filter by portfolio owner"),
    start: Optional[datetime] = Query(None, description="Earliest timestamp (inclusive)"),
    end: Optional[datetime] = Query(None, description="Latest timestamp (inclusive)"),
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    history: TradeHistory = Depends(get_trade_history),
    user: dict = Depends(require_role(Role.VIEWER)),
):
    """Return trades newest first, filtered and paginated."""
    result = history.list(
        page=page,
        size=size,
        instrument_id=instrument_id,
        start=start,
        end=end,
        portfolio_id=portfolio_id,
    )
    return APIEnvelope(
        data=[TradeResponse(**t) for t in result.items],
        meta=result.meta(),
    )
