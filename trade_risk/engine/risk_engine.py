"""Portfolio risk engine: exposure, concentration and risk score.

Metrics:
- Total exposure: sum of ``quantity * mark_price`` over all holdings.
- Concentration risk: value of the largest holding / total exposure
  (8-digit ratio, zero for an empty or zero-valued book).
- Risk score: concentration risk rescaled to 0-100.

Every call computes fresh values and appends a RiskMetric snapshot, the
empty-portfolio case included. Caching is the read path's concern.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from trade_risk.core.enums import AuditAction
from trade_risk.core.models import Portfolio, RiskMetric
from trade_risk.core.utils.logging_config import get_logger
from trade_risk.core.utils.timeutils import to_naive_utc, utc_now

from . import money
from .exceptions import NotFound, ValidationFailure
from .locks import LockManager
from .pagination import Page, check_page
from .side_effects import SideEffectDispatcher
from .valuation import load_positions, position_value

logger = get_logger(__name__)


class RiskEngine:
    """Computes and snapshots portfolio risk.

    Args:
        session_factory: SQLAlchemy sessionmaker.
        audit: Optional audit sink with ``record(action, user_id)``.
        dispatcher: Runs the audit write off the critical path. Defaults to
            an inline dispatcher.
        locks: Serializes snapshot writes per portfolio so snapshot ids and
            timestamps grow together.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        audit: Any | None = None,
        dispatcher: SideEffectDispatcher | None = None,
        locks: LockManager | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.audit = audit
        self.dispatcher = dispatcher or SideEffectDispatcher(synchronous=True)
        self.locks = locks or LockManager()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate(self, portfolio_id: int) -> dict[str, Any]:
        """Compute risk for *portfolio_id* and persist a snapshot.

        Returns:
            Dict with portfolio_id, total_exposure, concentration_risk,
            risk_score and the persisted snapshot timestamp.

        Raises:
            NotFound: Portfolio does not exist.
        """
        logger.info("risk_calculation_start", portfolio_id=portfolio_id)

        # Latest-timestamp read and insert must not interleave per portfolio
        with self.locks.acquire(("risk", portfolio_id)):
            with self._session_factory() as session:
                try:
                    portfolio = session.get(Portfolio, portfolio_id)
                    if portfolio is None:
                        raise NotFound(f"Portfolio not found with id: {portfolio_id}")
                    owner_id = portfolio.user_id

                    metrics = self.compute_metrics(session, portfolio_id)
                    snapshot = RiskMetric(
                        portfolio_id=portfolio_id,
                        total_exposure=metrics["total_exposure"],
                        concentration_risk=metrics["concentration_risk"],
                        risk_score=metrics["risk_score"],
                        timestamp=self._next_timestamp(session, portfolio_id),
                    )
                    session.add(snapshot)
                    session.commit()
                except Exception:
                    session.rollback()
                    raise

        if self.audit is not None:
            self.dispatcher.submit(
                "audit_risk_calculated",
                self.audit.record,
                AuditAction.RISK_CALCULATED,
                owner_id,
            )

        logger.info(
            "risk_calculated",
            portfolio_id=portfolio_id,
            total_exposure=str(metrics["total_exposure"]),
            risk_score=str(metrics["risk_score"]),
            positions=metrics["positions"],
        )
        return {
            "portfolio_id": portfolio_id,
            "total_exposure": metrics["total_exposure"],
            "concentration_risk": metrics["concentration_risk"],
            "risk_score": metrics["risk_score"],
            "timestamp": snapshot.timestamp,
        }

    def compute_metrics(self, session: Session, portfolio_id: int) -> dict[str, Any]:
        """Pure computation over one consistent read of the positions."""
        positions = load_positions(session, portfolio_id)

        total_exposure = money.ZERO
        max_value = money.ZERO
        for position in positions:
            value = position_value(position)
            total_exposure += value
            if value > max_value:
                max_value = value

        concentration = money.ratio(max_value, total_exposure)
        return {
            "total_exposure": money.scale(total_exposure),
            "concentration_risk": concentration,
            "risk_score": money.percent(concentration),
            "positions": len(positions),
        }

    def history(
        self,
        portfolio_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 0,
        size: int = 10,
    ) -> Page:
        """Persisted snapshots, newest first, optionally within [start, end]."""
        check_page(page, size)
        if start is not None and end is not None and start > end:
            raise ValidationFailure("start must not be after end")

        with self._session_factory() as session:
            if session.get(Portfolio, portfolio_id) is None:
                raise NotFound(f"Portfolio not found with id: {portfolio_id}")

            filters = [RiskMetric.portfolio_id == portfolio_id]
            if start is not None:
                filters.append(RiskMetric.timestamp >= to_naive_utc(start))
            if end is not None:
                filters.append(RiskMetric.timestamp <= to_naive_utc(end))

            total = session.execute(
                select(func.count()).select_from(RiskMetric).where(*filters)
            ).scalar_one()
            rows = session.execute(
                select(RiskMetric)
                .where(*filters)
                .order_by(RiskMetric.timestamp.desc(), RiskMetric.id.desc())
                .offset(page * size)
                .limit(size)
            ).scalars().all()

        return Page(
            items=[
                {
                    "portfolio_id": m.portfolio_id,
                    "total_exposure": m.total_exposure,
                    "concentration_risk": m.concentration_risk,
                    "risk_score": m.risk_score,
                    "timestamp": m.timestamp,
                }
                for m in rows
            ],
            total=total,
            page=page,
            size=size,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _next_timestamp(self, session: Session, portfolio_id: int) -> datetime:
        """Now, but never earlier than the portfolio's latest snapshot."""
        now = utc_now()
        latest = session.execute(
            select(func.max(RiskMetric.timestamp)).where(
                RiskMetric.portfolio_id == portfolio_id
            )
        ).scalar_one_or_none()
        if latest is not None and latest > now:
            return latest
        return now
