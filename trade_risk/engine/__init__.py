"""Trade execution and portfolio consistency engine.

Exports the building blocks wired together by the API layer:
- PositionLedger: per-holding quantity and average-price rules
- PortfolioValuation: total value recomputed from positions
- RiskEngine: exposure, concentration and risk-score snapshots
- TradeExecutor: atomic trade execution under per-holding locks
- TradeHistory, InstrumentCatalog, PortfolioService: read/write helpers
"""

from .exceptions import (
    ConcurrencyConflict,
    DuplicateResource,
    InsufficientHolding,
    NoHolding,
    NotFound,
    TradeRiskError,
    ValidationFailure,
)
from .instrument_catalog import InstrumentCatalog
from .locks import LockManager
from .pagination import Page
from .portfolio_service import PortfolioService
from .position_ledger import PositionLedger
from .risk_engine import RiskEngine
from .side_effects import SideEffectDispatcher
from .trade_executor import TradeExecutor
from .trade_history import TradeHistory
from .valuation import PortfolioValuation

__all__ = [
    "ConcurrencyConflict",
    "DuplicateResource",
    "InstrumentCatalog",
    "InsufficientHolding",
    "LockManager",
    "NoHolding",
    "NotFound",
    "Page",
    "PortfolioService",
    "PortfolioValuation",
    "PositionLedger",
    "RiskEngine",
    "SideEffectDispatcher",
    "TradeExecutor",
    "TradeHistory",
    "TradeRiskError",
    "ValidationFailure",
]
