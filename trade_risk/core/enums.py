"""Shared enumerations used across models and the trade engine.

All enums use the (str, Enum) mixin pattern so their values are
serializable strings, compatible with database storage and JSON output.
"""

from enum import Enum


class TradeSide(str, Enum):
    """Direction of a trade."""

    BUY = "BUY"
    SELL = "SELL"


class TradeStatus(str, Enum):
    """Persisted trade status.

    A trade row is written as PENDING and flipped to EXECUTED in the same
    transaction. EXECUTED is terminal.
    """

    PENDING = "PENDING"
    EXECUTED = "EXECUTED"


class TradeState(str, Enum):
    """In-flight execution states of a trade request."""

    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    POSITION_UPDATED = "POSITION_UPDATED"
    VALUATION_UPDATED = "VALUATION_UPDATED"
    EXECUTED = "EXECUTED"


class CacheScope(str, Enum):
    """Cache namespaces the core invalidates after state changes."""

    PORTFOLIO = "portfolio"
    RISK = "risk"
    INSTRUMENTS = "instruments"


class AuditAction(str, Enum):
    """Actions recorded by the audit sink."""

    TRADE_EXECUTED = "TRADE_EXECUTED"
    RISK_CALCULATED = "RISK_CALCULATED"
    PORTFOLIO_CREATED = "PORTFOLIO_CREATED"
    INSTRUMENT_CREATED = "INSTRUMENT_CREATED"
    INSTRUMENT_PRICE_UPDATED = "INSTRUMENT_PRICE_UPDATED"
