"""Seed instruments, demo users and their empty portfolios.

Idempotent: uses INSERT ... ON CONFLICT DO NOTHING on the unique symbol /
username / user_id columns.
Run: python scripts/seed_demo_data.py
"""

from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from trade_risk.core.database import sync_session_factory
from trade_risk.core.models import Instrument, Portfolio, User


INSTRUMENTS = [
    # ── EQUITIES ─────────────────────────────────────────────────────────────
    {"symbol": "AAPL", "name": "Apple Inc.", "current_price": Decimal("189.8400")},
    {"symbol": "MSFT", "name": "Microsoft Corporation", "current_price": Decimal("415.5000")},
    {"symbol": "GOOGL", "name": "Alphabet Inc. Class A", "current_price": Decimal("172.6300")},
    {"symbol": "AMZN", "name": "Amazon.com Inc.", "current_price": Decimal("183.3200")},
    {"symbol": "NVDA", "name": "NVIDIA Corporation", "current_price": Decimal("121.7900")},

    # ── ETFs ─────────────────────────────────────────────────────────────────
    {"symbol": "SPY", "name": "SPDR S&P 500 ETF Trust", "current_price": Decimal("544.2200")},
    {"symbol": "QQQ", "name": "Invesco QQQ Trust", "current_price": Decimal("479.1100")},
    {"symbol": "TLT", "name": "iShares 20+ Year Treasury Bond ETF", "current_price": Decimal("92.4100")},

    # ── UNPRICED (valued at cost basis) ──────────────────────────────────────
    {"symbol": "PRIVCO", "name": "Private placement (no market price)", "current_price": None},
]

USERS = [
    {"username": "alice", "role": "TRADER"},
    {"username": "bob", "role": "TRADER"},
    {"username": "risk_admin", "role": "ADMIN"},
]


def main() -> None:
    session = sync_session_factory()
    try:
        stmt = pg_insert(Instrument).values(INSTRUMENTS)
        stmt = stmt.on_conflict_do_nothing(index_elements=["symbol"])
        instruments_added = session.execute(stmt).rowcount  # type: ignore[union-attr]

        stmt = pg_insert(User).values(USERS)
        stmt = stmt.on_conflict_do_nothing(index_elements=["username"])
        users_added = session.execute(stmt).rowcount  # type: ignore[union-attr]

        traders = session.execute(
            select(User.id).where(User.role == "TRADER")
        ).scalars().all()
        if traders:
            # version is managed by the ORM mapper; set the initial value explicitly here
            stmt = pg_insert(Portfolio).values(
                [{"user_id": uid, "total_value": Decimal("0.0000"), "version": 1} for uid in traders]
            )
            stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
            portfolios_added = session.execute(stmt).rowcount  # type: ignore[union-attr]
        else:
            portfolios_added = 0
        session.commit()

        total = session.execute(select(func.count()).select_from(Instrument)).scalar_one()
        print(
            f"Seeded {instruments_added} new instruments ({total} total in table), "
            f"{users_added} users, {portfolios_added} portfolios."
        )
    finally:
        session.close()


if __name__ == "__main__":
    main()
