"""Portfolio valuation: total value recomputed from current positions.

Each position is marked at the instrument's current price, or at its own
average price when the catalog has no price. The result is a pure function
of position state, so recomputing twice without an intervening trade
yields the same value.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload, sessionmaker
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from trade_risk.core.models import Portfolio, Position
from trade_risk.core.utils.logging_config import get_logger

from . import money
from .exceptions import ConcurrencyConflict, NotFound

logger = get_logger(__name__)


def mark_price(position: Position) -> Decimal:
    """Instrument current price, falling back to the position's cost basis."""
    current = position.instrument.current_price
    return current if current is not None else position.avg_price


def position_value(position: Position) -> Decimal:
    """Unscaled ``quantity * mark_price``."""
    return money.multiply(mark_price(position), position.quantity)


def load_positions(session: Session, portfolio_id: int) -> list[Position]:
    """All positions of a portfolio with instruments, in one SELECT."""
    stmt = (
        select(Position)
        .options(joinedload(Position.instrument))
        .where(Position.portfolio_id == portfolio_id)
        .order_by(Position.id)
        .execution_options(populate_existing=True)
    )
    return list(session.execute(stmt).scalars().unique().all())


class PortfolioValuation:
    """Recomputes and stores ``Portfolio.total_value``.

    Args:
        session_factory: Only needed for :meth:`revalue`, which runs in its
            own transaction. :meth:`recompute` joins the caller's session.
        max_conflict_retries: Bounded retries for :meth:`revalue` on a
            portfolio version conflict.
    """

    def __init__(
        self,
        session_factory: sessionmaker | None = None,
        max_conflict_retries: int = 1,
    ) -> None:
        if max_conflict_retries < 0:
            raise ValueError("max_conflict_retries must be >= 0")
        self._session_factory = session_factory
        self.max_conflict_retries = max_conflict_retries

    def compute(self, session: Session, portfolio_id: int) -> Decimal:
        """Scaled sum of position values, without writing anything."""
        total = sum(
            (position_value(p) for p in load_positions(session, portfolio_id)),
            money.ZERO,
        )
        return money.scale(total)

    def recompute(
        self,
        session: Session,
        portfolio_id: int,
        touch: bool = False,
    ) -> Decimal:
        """Store the freshly computed total value on the portfolio.

        The portfolio row is resolved before positions are read so a
        concurrent writer always shows up as a version conflict on flush.

        Args:
            session: Caller's session; nothing is committed here.
            portfolio_id: Portfolio to revalue.
            touch: Force an UPDATE (and version bump) even if the value did
                not change, so concurrent valuations are always detected.

        Raises:
            NotFound: Portfolio does not exist.
            StaleDataError: Another transaction updated the portfolio first.
        """
        portfolio = session.get(Portfolio, portfolio_id)
        if portfolio is None:
            raise NotFound(f"Portfolio not found with id: {portfolio_id}")

        total = self.compute(session, portfolio_id)
        if portfolio.total_value != total:
            portfolio.total_value = total
        elif touch:
            flag_modified(portfolio, "total_value")
        session.flush()

        logger.debug(
            "portfolio_revalued",
            portfolio_id=portfolio_id,
            total_value=str(total),
            version=portfolio.version,
        )
        return total

    def revalue(self, portfolio_id: int) -> Decimal:
        """Recompute in a dedicated transaction (e.g. after a price refresh)."""
        if self._session_factory is None:
            raise RuntimeError("PortfolioValuation.revalue requires a session_factory")

        attempts = self.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            with self._session_factory() as session:
                try:
                    total = self.recompute(session, portfolio_id)
                    session.commit()
                    return total
                except StaleDataError as exc:
                    session.rollback()
                    logger.warning(
                        "portfolio_revalue_conflict",
                        portfolio_id=portfolio_id,
                        attempt=attempt,
                    )
                    if attempt == attempts:
                        raise ConcurrencyConflict(
                            f"Portfolio {portfolio_id} kept changing during valuation"
                        ) from exc
                except Exception:
                    session.rollback()
                    raise
        raise AssertionError("unreachable")
