"""Portfolio and Position models.

  - Portfolio: one per user, holds the recomputed total value
  - Position: current holding of one instrument in one portfolio

Both carry a SQLAlchemy ``version_id_col``. Every UPDATE/DELETE is issued
with ``WHERE version = :expected`` and raises ``StaleDataError`` when a
concurrent writer got there first.
"""

from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, Money
from .instruments import Instrument
from .users import User


class Portfolio(Base):
    """A trader's portfolio (1:1 with user)."""

    __tablename__ = "portfolios"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("users.id"), unique=True, nullable=False
    )
    total_value: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0.0000")
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    user: Mapped[User] = relationship(lazy="joined")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<Portfolio(id={self.id}, user_id={self.user_id}, "
            f"total_value={self.total_value}, version={self.version})>"
        )


class Position(Base):
    """Holding of one instrument within one portfolio.

    At most one row per (portfolio_id, instrument_id). A position whose
    quantity reaches zero is deleted, never stored.
    """

    __tablename__ = "positions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    portfolio_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("portfolios.id"), nullable=False
    )
    instrument_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("instruments.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    instrument: Mapped[Instrument] = relationship()

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint(
            "portfolio_id",
            "instrument_id",
            name="uq_positions_portfolio_instrument",
        ),
        CheckConstraint("quantity > 0", name="quantity_positive"),
        Index("ix_positions_portfolio_id", "portfolio_id"),
        Index("ix_positions_instrument_id", "instrument_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Position(id={self.id}, portfolio_id={self.portfolio_id}, "
            f"instrument_id={self.instrument_id}, quantity={self.quantity}, "
            f"avg_price={self.avg_price})>"
        )
