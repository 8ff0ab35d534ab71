"""Append-only risk snapshot history per portfolio."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, Money, Ratio


class RiskMetric(Base):
    __tablename__ = "risk_metrics"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    portfolio_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("portfolios.id"), nullable=False
    )
    total_exposure: Mapped[Decimal] = mapped_column(Money, nullable=False)
    concentration_risk: Mapped[Decimal] = mapped_column(Ratio, nullable=False)
    risk_score: Mapped[Decimal] = mapped_column(Money, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_risk_metrics_portfolio_id_timestamp", "portfolio_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<RiskMetric(portfolio_id={self.portfolio_id}, "
            f"risk_score={self.risk_score}, timestamp={self.timestamp})>"
        )
