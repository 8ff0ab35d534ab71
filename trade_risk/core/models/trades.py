"""Trade records.

Written as PENDING and flipped to EXECUTED inside the same transaction as
the position and valuation updates, so a committed row is always EXECUTED.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, Money
from .instruments import Instrument


class Trade(Base):
    __tablename__ = "trades"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("users.id"), nullable=False
    )
    instrument_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("instruments.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="PENDING")
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    instrument: Mapped[Instrument] = relationship(lazy="joined")

    __table_args__ = (
        Index("ix_trades_user_id", "user_id"),
        Index("ix_trades_instrument_id", "instrument_id"),
        Index("ix_trades_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<Trade(id={self.id}, side={self.side!r}, quantity={self.quantity}, "
            f"price={self.price}, status={self.status!r})>"
        )
