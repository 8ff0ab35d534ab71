"""Read-only, paginated trade history (newest first)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from trade_risk.core.models import Portfolio, Trade
from trade_risk.core.utils.timeutils import to_naive_utc

from .exceptions import NotFound, ValidationFailure
from .pagination import Page, check_page
from .trade_executor import trade_to_dict


class TradeHistory:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def list(
        self,
        page: int = 0,
        size: int = 20,
        instrument_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        portfolio_id: int | None = None,
        user_id: int | None = None,
    ) -> Page:
        """Trades matching every given filter.

        ``portfolio_id`` resolves to the portfolio owner's trades. ``start``
        and ``end`` bound ``timestamp`` inclusively.
        """
        check_page(page, size)
        if start is not None and end is not None and start > end:
            raise ValidationFailure("start must not be after end")

        with self._session_factory() as session:
            filters = []
            if portfolio_id is not None:
                portfolio = session.get(Portfolio, portfolio_id)
                if portfolio is None:
                    raise NotFound(f"Portfolio not found with id: {portfolio_id}")
                filters.append(Trade.user_id == portfolio.user_id)
            if user_id is not None:
                filters.append(Trade.user_id == user_id)
            if instrument_id is not None:
                filters.append(Trade.instrument_id == instrument_id)
            if start is not None:
                filters.append(Trade.timestamp >= to_naive_utc(start))
            if end is not None:
                filters.append(Trade.timestamp <= to_naive_utc(end))

            total = session.execute(
                select(func.count()).select_from(Trade).where(*filters)
            ).scalar_one()
            trades = session.execute(
                select(Trade)
                .where(*filters)
                .order_by(Trade.timestamp.desc(), Trade.id.desc())
                .offset(page * size)
                .limit(size)
            ).scalars().unique().all()

            items = [trade_to_dict(t) for t in trades]

        return Page(items=items, total=total, page=page, size=size)
