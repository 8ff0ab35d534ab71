"""Portfolio lookups and creation (one portfolio per user)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from trade_risk.core.enums import AuditAction
from trade_risk.core.models import Portfolio, User
from trade_risk.core.utils.logging_config import get_logger

from . import money
from .exceptions import DuplicateResource, NotFound
from .pagination import Page, check_page
from .valuation import load_positions, mark_price, position_value

logger = get_logger(__name__)


class PortfolioService:
    """Creates and reads portfolios with their positions.

    Args:
        session_factory: SQLAlchemy sessionmaker.
        audit: Optional audit sink.
    """

    def __init__(self, session_factory: sessionmaker, audit: Any | None = None) -> None:
        self._session_factory = session_factory
        self.audit = audit

    def create(self, user_id: int) -> dict[str, Any]:
        """Open an empty portfolio for *user_id*.

        Raises:
            NotFound: User does not exist.
            DuplicateResource: User already has a portfolio.
        """
        with self._session_factory() as session:
            if session.get(User, user_id) is None:
                raise NotFound(f"User not found with id: {user_id}")
            existing = session.execute(
                select(Portfolio.id).where(Portfolio.user_id == user_id)
            ).first()
            if existing is not None:
                raise DuplicateResource(f"User {user_id} already has a portfolio")

            portfolio = Portfolio(user_id=user_id, total_value=money.scale(0))
            session.add(portfolio)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateResource(f"User {user_id} already has a portfolio") from exc
            result = self._to_dict(session, portfolio)

        logger.info("portfolio_created", portfolio_id=result["id"], user_id=user_id)
        if self.audit is not None:
            self.audit.record(AuditAction.PORTFOLIO_CREATED, user_id)
        return result

    def get(self, portfolio_id: int) -> dict[str, Any]:
        with self._session_factory() as session:
            portfolio = session.get(Portfolio, portfolio_id)
            if portfolio is None:
                raise NotFound(f"Portfolio not found with id: {portfolio_id}")
            return self._to_dict(session, portfolio)

    def get_by_user(self, user_id: int) -> dict[str, Any]:
        with self._session_factory() as session:
            portfolio = session.execute(
                select(Portfolio).where(Portfolio.user_id == user_id)
            ).scalar_one_or_none()
            if portfolio is None:
                raise NotFound(f"Portfolio not found for user: {user_id}")
            return self._to_dict(session, portfolio)

    def list(self, page: int = 0, size: int = 20) -> Page:
        check_page(page, size)
        with self._session_factory() as session:
            total = session.execute(
                select(func.count()).select_from(Portfolio)
            ).scalar_one()
            rows = session.execute(
                select(Portfolio).order_by(Portfolio.id).offset(page * size).limit(size)
            ).scalars().unique().all()
            items = [self._to_dict(session, p, with_positions=False) for p in rows]
        return Page(items=items, total=total, page=page, size=size)

    @staticmethod
    def _to_dict(
        session: Session, portfolio: Portfolio, with_positions: bool = True
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": portfolio.id,
            "user_id": portfolio.user_id,
            "username": portfolio.user.username,
            "total_value": portfolio.total_value,
        }
        if with_positions:
            data["positions"] = [
                {
                    "instrument_id": p.instrument_id,
                    "symbol": p.instrument.symbol,
                    "quantity": p.quantity,
                    "avg_price": p.avg_price,
                    "market_price": mark_price(p),
                    "market_value": money.scale(position_value(p)),
                }
                for p in load_positions(session, portfolio.id)
            ]
        return data
