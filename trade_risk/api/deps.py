"""FastAPI dependency injection: database sessions and engine services.

Services are lazy module-level singletons so every request shares one
LockManager and one side-effect pool. Tests replace them through
``app.dependency_overrides``.
"""

import logging
from typing import Optional

from trade_risk.cache import PortfolioCache
from trade_risk.compliance import AuditLogger
from trade_risk.core.config import settings
from trade_risk.core.database import get_db, sync_session_factory
from trade_risk.core.redis import get_redis
from trade_risk.engine import (
    InstrumentCatalog,
    LockManager,
    PortfolioService,
    PortfolioValuation,
    PositionLedger,
    RiskEngine,
    SideEffectDispatcher,
    TradeExecutor,
    TradeHistory,
)

logger = logging.getLogger(__name__)

__all__ = [
    "get_db",
    "get_cache",
    "get_trade_executor",
    "get_trade_history",
    "get_risk_engine",
    "get_instrument_catalog",
    "get_portfolio_service",
    "shutdown_services",
]

# ---------------------------------------------------------------------------
# Lazy singletons
# ---------------------------------------------------------------------------
_locks = LockManager()
_dispatcher: Optional[SideEffectDispatcher] = None
_audit: Optional[AuditLogger] = None
_executor: Optional[TradeExecutor] = None
_risk_engine: Optional[RiskEngine] = None


def _get_dispatcher() -> SideEffectDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = SideEffectDispatcher(max_workers=settings.side_effect_workers)
    return _dispatcher


def _get_audit() -> AuditLogger:
    global _audit
    if _audit is None:
        _audit = AuditLogger(
            audit_dir=settings.audit_dir or None,
            db_session_factory=sync_session_factory,
        )
    return _audit


def _get_valuation() -> PortfolioValuation:
    return PortfolioValuation(
        sync_session_factory, max_conflict_retries=settings.trade_conflict_retries
    )


def get_cache() -> PortfolioCache:
    """Read-through cache for route handlers."""
    return PortfolioCache(get_redis())


def get_trade_executor() -> TradeExecutor:
    """Return (or create) the module-level TradeExecutor singleton."""
    global _executor
    if _executor is None:
        _executor = TradeExecutor(
            sync_session_factory,
            ledger=PositionLedger(_locks),
            valuation=_get_valuation(),
            audit=_get_audit(),
            cache=get_cache(),
            dispatcher=_get_dispatcher(),
            max_conflict_retries=settings.trade_conflict_retries,
        )
        logger.info("TradeExecutor initialised")
    return _executor


def get_risk_engine() -> RiskEngine:
    global _risk_engine
    if _risk_engine is None:
        _risk_engine = RiskEngine(
            sync_session_factory,
            audit=_get_audit(),
            dispatcher=_get_dispatcher(),
            locks=_locks,
        )
    return _risk_engine


def get_trade_history() -> TradeHistory:
    return TradeHistory(sync_session_factory)


def get_instrument_catalog() -> InstrumentCatalog:
    return InstrumentCatalog(
        sync_session_factory,
        cache=get_cache(),
        audit=_get_audit(),
        valuation=_get_valuation(),
    )


def get_portfolio_service() -> PortfolioService:
    return PortfolioService(sync_session_factory, audit=_get_audit())


def shutdown_services() -> None:
    """Flush pending side effects and drop the singletons."""
    global _dispatcher, _audit, _executor, _risk_engine
    if _dispatcher is not None:
        _dispatcher.shutdown(wait_for_pending=True)
    _dispatcher = _audit = _executor = _risk_engine = None
