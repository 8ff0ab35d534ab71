"""Position ledger: quantity / average-price rules for a single holding.

One row per (portfolio, instrument). BUY blends the cost basis
quantity-weighted; SELL only reduces quantity and deletes the row when it
reaches zero.

Every mutation must run while the caller holds ``locked(portfolio_id,
instrument_id)`` and must stay inside the caller's transaction until
commit. The position row is read with ``SELECT ... FOR UPDATE`` so
PostgreSQL also serializes writers from other processes.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trade_risk.core.models import Position
from trade_risk.core.utils.logging_config import get_logger

from . import money
from .exceptions import (
    ConcurrencyConflict,
    InsufficientHolding,
    NoHolding,
    ValidationFailure,
)
from .locks import LockManager

logger = get_logger(__name__)


def validate_quantity(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationFailure(f"Quantity must be an integer, got {quantity!r}")
    if quantity <= 0:
        raise ValidationFailure("Quantity must be positive")
    return quantity


def validate_price(price: Decimal | int | float | str) -> Decimal:
    try:
        value = money.to_decimal(price)
    except (ArithmeticError, ValueError, TypeError) as exc:
        raise ValidationFailure(f"Price is not a number: {price!r}") from exc
    if not value.is_finite() or value <= 0:
        raise ValidationFailure("Price must be positive")
    return value


class PositionLedger:
    """Applies BUY/SELL fills to the positions table."""

    def __init__(self, locks: LockManager | None = None) -> None:
        self.locks = locks or LockManager()

    def locked(self, portfolio_id: int, instrument_id: int):
        """Exclusive section for the (portfolio, instrument) holding."""
        return self.locks.holding(portfolio_id, instrument_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_position(
        self,
        session: Session,
        portfolio_id: int,
        instrument_id: int,
        for_update: bool = False,
    ) -> Position | None:
        """Fetch the holding, refreshing any copy already in the session."""
        stmt = select(Position).where(
            Position.portfolio_id == portfolio_id,
            Position.instrument_id == instrument_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        return session.execute(stmt).scalar_one_or_none()

    def check_sell(
        self,
        session: Session,
        portfolio_id: int,
        instrument_id: int,
        quantity: int,
        symbol: str | None = None,
        for_update: bool = False,
    ) -> Position:
        """Raise unless the holding can cover a SELL of *quantity*."""
        validate_quantity(quantity)
        position = self.get_position(
            session, portfolio_id, instrument_id, for_update=for_update
        )
        if position is None:
            raise NoHolding(f"No position held in {symbol or instrument_id}")
        if quantity > position.quantity:
            raise InsufficientHolding(
                f"Insufficient quantity. Available: {position.quantity}",
                available=position.quantity,
                requested=quantity,
            )
        return position

    # -------------------------------------------------------------------------
    # Mutations (caller holds the holding lock)
    # -------------------------------------------------------------------------

    def apply_buy(
        self,
        session: Session,
        portfolio_id: int,
        instrument_id: int,
        quantity: int,
        price: Decimal | int | float | str,
    ) -> Position:
        """Add *quantity* at *price*, blending the average cost."""
        validate_quantity(quantity)
        fill_price = validate_price(price)

        position = self.get_position(session, portfolio_id, instrument_id, for_update=True)
        if position is None:
            position = Position(
                portfolio_id=portfolio_id,
                instrument_id=instrument_id,
                quantity=quantity,
                avg_price=money.scale(fill_price),
            )
            session.add(position)
            try:
                session.flush()
            except IntegrityError as exc:
                # Another writer created the same holding first
                raise ConcurrencyConflict(
                    f"Position ({portfolio_id}, {instrument_id}) created concurrently"
                ) from exc
            logger.debug(
                "position_opened",
                portfolio_id=portfolio_id,
                instrument_id=instrument_id,
                quantity=quantity,
                avg_price=str(position.avg_price),
            )
            return position

        new_avg = money.weighted_average(
            position.quantity, position.avg_price, quantity, fill_price
        )
        position.quantity = position.quantity + quantity
        position.avg_price = new_avg
        session.flush()

        logger.debug(
            "position_increased",
            portfolio_id=portfolio_id,
            instrument_id=instrument_id,
            quantity=position.quantity,
            avg_price=str(new_avg),
        )
        return position

    def apply_sell(
        self,
        session: Session,
        portfolio_id: int,
        instrument_id: int,
        quantity: int,
        symbol: str | None = None,
    ) -> Position | None:
        """Remove *quantity*; returns None when the holding is closed out."""
        position = self.check_sell(
            session, portfolio_id, instrument_id, quantity, symbol, for_update=True
        )
        remaining = position.quantity - quantity
        if remaining == 0:
            session.delete(position)
            session.flush()
            logger.debug(
                "position_closed",
                portfolio_id=portfolio_id,
                instrument_id=instrument_id,
            )
            return None

        position.quantity = remaining
        session.flush()
        logger.debug(
            "position_reduced",
            portfolio_id=portfolio_id,
            instrument_id=instrument_id,
            quantity=remaining,
        )
        return position
