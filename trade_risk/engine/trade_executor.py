"""Trade executor: validates a fill and applies it atomically.

Flow of a single trade:
1. RECEIVED           -- request accepted for processing.
2. VALIDATED          -- instrument, user, portfolio exist; SELL covered.
3. POSITION_UPDATED   -- trade row (PENDING) and position change flushed.
4. VALUATION_UPDATED  -- portfolio total value recomputed.
5. EXECUTED           -- trade flipped to EXECUTED and committed.

Steps 3-5 share one database transaction and run under the holding lock,
so either everything is visible or nothing is. Audit and cache
invalidation are dispatched only after the commit and can never undo or
fail the trade.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from trade_risk.core.enums import AuditAction, CacheScope, TradeSide, TradeState, TradeStatus
from trade_risk.core.models import Instrument, Portfolio, Trade, User
from trade_risk.core.utils.logging_config import get_logger
from trade_risk.core.utils.timeutils import utc_now

from . import money
from .exceptions import ConcurrencyConflict, NotFound, ValidationFailure
from .position_ledger import PositionLedger, validate_price, validate_quantity
from .side_effects import SideEffectDispatcher
from .valuation import PortfolioValuation

logger = get_logger(__name__)


def parse_side(side: TradeSide | str) -> TradeSide:
    if isinstance(side, TradeSide):
        return side
    try:
        return TradeSide(str(side).upper())
    except ValueError as exc:
        raise ValidationFailure(f"Unknown trade side: {side!r}") from exc


def trade_to_dict(trade: Trade, symbol: str | None = None) -> dict[str, Any]:
    return {
        "id": trade.id,
        "user_id": trade.user_id,
        "instrument_id": trade.instrument_id,
        "symbol": symbol if symbol is not None else trade.instrument.symbol,
        "quantity": trade.quantity,
        "price": trade.price,
        "side": trade.side,
        "status": trade.status,
        "timestamp": trade.timestamp,
    }


class TradeExecutor:
    """Executes BUY/SELL trades against a user's portfolio.

    Args:
        session_factory: SQLAlchemy sessionmaker; one session per attempt.
        ledger: Position ledger (owns the holding locks).
        valuation: Portfolio valuation.
        audit: Optional audit sink with ``record(action, user_id)``.
        cache: Optional cache with ``invalidate(scope, key)``.
        dispatcher: Post-commit side-effect runner.
        max_conflict_retries: Extra attempts after an optimistic-version
            conflict before giving up with ConcurrencyConflict.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        ledger: PositionLedger | None = None,
        valuation: PortfolioValuation | None = None,
        audit: Any | None = None,
        cache: Any | None = None,
        dispatcher: SideEffectDispatcher | None = None,
        max_conflict_retries: int = 1,
    ) -> None:
        if max_conflict_retries < 0:
            raise ValueError("max_conflict_retries must be >= 0")
        self._session_factory = session_factory
        self.ledger = ledger or PositionLedger()
        self.valuation = valuation or PortfolioValuation(session_factory)
        self.audit = audit
        self.cache = cache
        self.dispatcher = dispatcher or SideEffectDispatcher(synchronous=True)
        self.max_conflict_retries = max_conflict_retries

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute(
        self,
        user_id: int,
        instrument_id: int,
        quantity: int,
        price: Decimal | int | float | str,
        side: TradeSide | str,
    ) -> dict[str, Any]:
        """Execute one trade and return the persisted EXECUTED record.

        Raises:
            ValidationFailure: Bad quantity/price/side, or an uncovered SELL
                (NoHolding / InsufficientHolding).
            NotFound: Instrument, user, or the user's portfolio is missing.
            ConcurrencyConflict: Optimistic conflicts persisted past the
                bounded retry. Nothing was persisted.
        """
        trade_side = parse_side(side)
        validate_quantity(quantity)
        fill_price = money.scale(validate_price(price))

        log = logger.bind(
            user_id=user_id,
            instrument_id=instrument_id,
            side=trade_side.value,
            quantity=quantity,
            price=str(fill_price),
        )
        log.info("trade_execution_start", state=TradeState.RECEIVED.value)

        attempts = self.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                result, portfolio_id = self._execute_once(
                    log, user_id, instrument_id, quantity, fill_price, trade_side
                )
                break
            except (StaleDataError, ConcurrencyConflict) as exc:
                log.warning("trade_conflict", attempt=attempt, error=str(exc))
                if attempt == attempts:
                    raise ConcurrencyConflict(
                        f"Trade could not be applied after {attempts} attempts "
                        "due to concurrent updates"
                    ) from exc

        self._dispatch_side_effects(user_id, portfolio_id)
        log.info("trade_executed", trade_id=result["id"], portfolio_id=portfolio_id)
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _execute_once(
        self,
        log: Any,
        user_id: int,
        instrument_id: int,
        quantity: int,
        price: Decimal,
        side: TradeSide,
    ) -> tuple[dict[str, Any], int]:
        with self._session_factory() as session:
            try:
                instrument, portfolio = self._resolve(session, user_id, instrument_id)

                # Early rejection; re-checked under the lock by the ledger
                if side is TradeSide.SELL:
                    self.ledger.check_sell(
                        session, portfolio.id, instrument.id, quantity, instrument.symbol
                    )
                log.info("trade_state", state=TradeState.VALIDATED.value)

                with self.ledger.locked(portfolio.id, instrument.id):
                    # Version must be read after the lock is held
                    session.get(Portfolio, portfolio.id, populate_existing=True)

                    trade = Trade(
                        user_id=user_id,
                        instrument_id=instrument.id,
                        quantity=quantity,
                        price=price,
                        side=side.value,
                        status=TradeStatus.PENDING.value,
                        timestamp=utc_now(),
                    )
                    session.add(trade)
                    session.flush()

                    if side is TradeSide.BUY:
                        self.ledger.apply_buy(
                            session, portfolio.id, instrument.id, quantity, price
                        )
                    else:
                        self.ledger.apply_sell(
                            session, portfolio.id, instrument.id, quantity, instrument.symbol
                        )
                    log.info(
                        "trade_state",
                        state=TradeState.POSITION_UPDATED.value,
                        trade_id=trade.id,
                    )

                    total = self.valuation.recompute(session, portfolio.id, touch=True)
                    log.info(
                        "trade_state",
                        state=TradeState.VALUATION_UPDATED.value,
                        trade_id=trade.id,
                        total_value=str(total),
                    )

                    trade.status = TradeStatus.EXECUTED.value
                    session.flush()
                    session.commit()

                log.info("trade_state", state=TradeState.EXECUTED.value, trade_id=trade.id)
                return trade_to_dict(trade, instrument.symbol), portfolio.id
            except Exception:
                session.rollback()
                raise

    def _resolve(
        self, session: Session, user_id: int, instrument_id: int
    ) -> tuple[Instrument, Portfolio]:
        instrument = session.get(Instrument, instrument_id)
        if instrument is None:
            raise NotFound(f"Instrument not found with id: {instrument_id}")
        if session.get(User, user_id) is None:
            raise NotFound(f"User not found with id: {user_id}")
        portfolio = session.execute(
            select(Portfolio).where(Portfolio.user_id == user_id)
        ).scalar_one_or_none()
        if portfolio is None:
            raise NotFound(f"Portfolio not found for user: {user_id}")
        return instrument, portfolio

    def _dispatch_side_effects(self, user_id: int, portfolio_id: int) -> None:
        if self.audit is not None:
            self.dispatcher.submit(
                "audit_trade_executed",
                self.audit.record,
                AuditAction.TRADE_EXECUTED,
                user_id,
            )
        if self.cache is not None:
            self.dispatcher.submit(
                "invalidate_portfolio_cache",
                self.cache.invalidate,
                CacheScope.PORTFOLIO,
                portfolio_id,
            )
            self.dispatcher.submit(
                "invalidate_risk_cache",
                self.cache.invalidate,
                CacheScope.RISK,
                portfolio_id,
            )
