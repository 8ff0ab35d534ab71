"""Pydantic v2 request/response schemas for the Trade Risk API.

Decimal fields are emitted as plain fixed-point strings (``"0.00000000"``,
never ``"0E-8"``) so clients keep the exact scale.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from trade_risk.core.enums import TradeSide


def _plain_decimal(value: Decimal) -> str:
    return format(value, "f")


DecimalStr = Annotated[
    Decimal, PlainSerializer(_plain_decimal, return_type=str, when_used="json")
]


# ---------------------------------------------------------------------------
# Generic API envelope
# ---------------------------------------------------------------------------
T = TypeVar("T")


class APIEnvelope(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    status: str = "ok"
    data: T
    meta: dict[str, Any] = Field(default_factory=dict)


# =====================================================================
# REQUEST MODELS
# =====================================================================


class TradeRequest(BaseModel):
    """Request body for POST /trades.

    ``user_id`` is honoured for ADMIN callers only; other roles trade as
    the user in their token.
    """

    user_id: Optional[int] = None
    instrument_id: int
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(..., gt=0, max_digits=19, decimal_places=4)
    side: TradeSide


class PortfolioCreateRequest(BaseModel):
    """Request body for POST /portfolios."""

    user_id: Optional[int] = None


class InstrumentCreateRequest(BaseModel):
    """Request body for POST /instruments."""

    symbol: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    current_price: Optional[Decimal] = Field(None, gt=0, max_digits=19, decimal_places=4)


class InstrumentPriceUpdateRequest(BaseModel):
    """Request body for PATCH /instruments/{id}/price."""

    current_price: Decimal = Field(..., gt=0, max_digits=19, decimal_places=4)


# =====================================================================
# RESPONSE MODELS
# =====================================================================


class TradeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    instrument_id: int
    symbol: str
    quantity: int
    price: DecimalStr
    side: str
    status: str
    timestamp: datetime


class PositionResponse(BaseModel):
    instrument_id: int
    symbol: str
    quantity: int
    avg_price: DecimalStr
    market_price: DecimalStr
    market_value: DecimalStr


class PortfolioResponse(BaseModel):
    id: int
    user_id: int
    username: str
    total_value: DecimalStr
    positions: list[PositionResponse] = Field(default_factory=list)


class InstrumentResponse(BaseModel):
    id: int
    symbol: str
    name: str
    current_price: Optional[DecimalStr] = None


class RiskResponse(BaseModel):
    """One risk snapshot for a portfolio."""

    portfolio_id: int
    total_exposure: DecimalStr
    concentration_risk: DecimalStr
    risk_score: DecimalStr
    timestamp: datetime
