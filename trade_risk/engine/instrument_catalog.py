"""Instrument catalog: symbols, names and current prices."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from trade_risk.core.enums import AuditAction, CacheScope
from trade_risk.core.models import Instrument, Position
from trade_risk.core.utils.logging_config import get_logger
from trade_risk.core.utils.timeutils import utc_now

from . import money
from .exceptions import ConcurrencyConflict, DuplicateResource, NotFound, ValidationFailure
from .pagination import Page, check_page
from .position_ledger import validate_price
from .valuation import PortfolioValuation

logger = get_logger(__name__)


def instrument_to_dict(instrument: Instrument) -> dict[str, Any]:
    return {
        "id": instrument.id,
        "symbol": instrument.symbol,
        "name": instrument.name,
        "current_price": instrument.current_price,
    }


class InstrumentCatalog:
    """CRUD over instruments.

    Args:
        session_factory: SQLAlchemy sessionmaker.
        cache: Optional cache; the instruments scope is cleared on writes.
        audit: Optional audit sink.
        valuation: Revalues the portfolios holding an instrument after its
            price changes. Defaults to one on *session_factory*.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        cache: Any | None = None,
        audit: Any | None = None,
        valuation: PortfolioValuation | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.cache = cache
        self.audit = audit
        self.valuation = valuation or PortfolioValuation(session_factory)

    def get(self, instrument_id: int) -> dict[str, Any]:
        with self._session_factory() as session:
            instrument = session.get(Instrument, instrument_id)
            if instrument is None:
                raise NotFound(f"Instrument not found with id: {instrument_id}")
            return instrument_to_dict(instrument)

    def exists_by_symbol(self, symbol: str) -> bool:
        with self._session_factory() as session:
            found = session.execute(
                select(Instrument.id).where(Instrument.symbol == symbol.upper())
            ).first()
            return found is not None

    def create(
        self,
        symbol: str,
        name: str,
        current_price: Decimal | int | float | str | None = None,
        user_id: int | None = None,
    ) -> dict[str, Any]:
        """Register a new instrument. Symbols are stored upper-case."""
        symbol = (symbol or "").strip().upper()
        if not symbol:
            raise ValidationFailure("Symbol is required")
        if not (name or "").strip():
            raise ValidationFailure("Name is required")
        price = money.scale(validate_price(current_price)) if current_price is not None else None

        if self.exists_by_symbol(symbol):
            raise DuplicateResource(f"Instrument with symbol {symbol} already exists")

        with self._session_factory() as session:
            instrument = Instrument(symbol=symbol, name=name.strip(), current_price=price)
            session.add(instrument)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateResource(
                    f"Instrument with symbol {symbol} already exists"
                ) from exc
            result = instrument_to_dict(instrument)

        logger.info("instrument_created", instrument_id=result["id"], symbol=symbol)
        self._after_write(AuditAction.INSTRUMENT_CREATED, user_id)
        return result

    def list(self, page: int = 0, size: int = 20) -> Page:
        check_page(page, size)
        with self._session_factory() as session:
            total = session.execute(
                select(func.count()).select_from(Instrument)
            ).scalar_one()
            rows = session.execute(
                select(Instrument).order_by(Instrument.symbol).offset(page * size).limit(size)
            ).scalars().all()
            items = [instrument_to_dict(i) for i in rows]
        return Page(items=items, total=total, page=page, size=size)

    def update_price(
        self,
        instrument_id: int,
        price: Decimal | int | float | str,
        user_id: int | None = None,
    ) -> dict[str, Any]:
        """Set the current price and revalue every portfolio holding it.

        The cached portfolio and risk views of those portfolios are
        invalidated as well as the instrument pages.

        Returns:
            The instrument dict plus ``revalued_portfolios``, the ids of
            the portfolios whose stored total was recomputed.
        """
        new_price = money.scale(validate_price(price))
        with self._session_factory() as session:
            instrument = session.get(Instrument, instrument_id)
            if instrument is None:
                raise NotFound(f"Instrument not found with id: {instrument_id}")
            instrument.current_price = new_price
            instrument.updated_at = utc_now()
            session.commit()
            result = instrument_to_dict(instrument)
            holders = session.execute(
                select(Position.portfolio_id)
                .where(Position.instrument_id == instrument_id)
                .distinct()
                .order_by(Position.portfolio_id)
            ).scalars().all()

        logger.info(
            "instrument_price_updated",
            instrument_id=instrument_id,
            current_price=str(new_price),
            holders=len(holders),
        )

        revalued = []
        for portfolio_id in holders:
            try:
                self.valuation.revalue(portfolio_id)
                revalued.append(portfolio_id)
            except ConcurrencyConflict:
                # A concurrent trade already stored a total at the new price
                logger.warning("price_revalue_skipped", portfolio_id=portfolio_id)
            except NotFound:
                # Portfolio removed since the holder query
                continue
            if self.cache is not None:
                self.cache.invalidate(CacheScope.PORTFOLIO, portfolio_id)
                self.cache.invalidate(CacheScope.RISK, portfolio_id)

        self._after_write(AuditAction.INSTRUMENT_PRICE_UPDATED, user_id)
        result["revalued_portfolios"] = revalued
        return result

    def _after_write(self, action: AuditAction, user_id: int | None) -> None:
        if self.cache is not None:
            self.cache.invalidate_all(CacheScope.INSTRUMENTS)
        if self.audit is not None:
            self.audit.record(action, user_id)
