"""Root pytest configuration and shared fixtures.

Every test gets its own file-backed SQLite database (file, not memory, so
worker threads share it) with the full schema created from the ORM models.

Fixtures:
- session_factory: sessionmaker bound to the per-test database
- seed: users, portfolios and instruments used across test modules
- audit, cache, redis_mock, dispatcher: side-effect collaborators
- executor, ledger, valuation, risk_engine: engine components
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from trade_risk.cache import PortfolioCache
from trade_risk.compliance import AuditLogger
from trade_risk.core.models import Base, Instrument, Portfolio, Position, User
from trade_risk.engine import (
    LockManager,
    PortfolioValuation,
    PositionLedger,
    RiskEngine,
    SideEffectDispatcher,
    TradeExecutor,
)


@dataclass
class Seed:
    """Ids of the rows created by the ``seed`` fixture."""

    alice_id: int
    bob_id: int
    carol_id: int  # no portfolio
    alice_portfolio_id: int
    bob_portfolio_id: int
    aapl_id: int  # priced 150.0000
    msft_id: int  # priced 300.0000
    privco_id: int  # unpriced


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def db_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'trade_risk.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def seed(session_factory) -> Seed:
    with session_factory() as session:
        alice = User(username="alice", role="TRADER")
        bob = User(username="bob", role="TRADER")
        carol = User(username="carol", role="TRADER")
        aapl = Instrument(symbol="AAPL", name="Apple Inc.", current_price=Decimal("150.0000"))
        msft = Instrument(symbol="MSFT", name="Microsoft", current_price=Decimal("300.0000"))
        privco = Instrument(symbol="PRIVCO", name="Private Co", current_price=None)
        session.add_all([alice, bob, carol, aapl, msft, privco])
        session.flush()

        alice_pf = Portfolio(user_id=alice.id, total_value=Decimal("0.0000"))
        bob_pf = Portfolio(user_id=bob.id, total_value=Decimal("0.0000"))
        session.add_all([alice_pf, bob_pf])
        session.commit()

        return Seed(
            alice_id=alice.id,
            bob_id=bob.id,
            carol_id=carol.id,
            alice_portfolio_id=alice_pf.id,
            bob_portfolio_id=bob_pf.id,
            aapl_id=aapl.id,
            msft_id=msft.id,
            privco_id=privco.id,
        )


# =============================================================================
# Side-effect collaborators
# =============================================================================

@pytest.fixture
def audit(tmp_path, session_factory) -> AuditLogger:
    return AuditLogger(
        audit_dir=str(tmp_path / "audit"),
        db_session_factory=session_factory,
    )


@pytest.fixture
def redis_mock() -> MagicMock:
    mock = MagicMock()
    mock.get.return_value = None
    mock.scan.return_value = (0, [])
    mock.ping.return_value = True
    return mock


@pytest.fixture
def cache(redis_mock) -> PortfolioCache:
    return PortfolioCache(redis_mock)


@pytest.fixture
def dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher(synchronous=True)


# =============================================================================
# Engine components
# =============================================================================

@pytest.fixture
def ledger() -> PositionLedger:
    return PositionLedger(LockManager())


@pytest.fixture
def valuation(session_factory) -> PortfolioValuation:
    return PortfolioValuation(session_factory)


@pytest.fixture
def executor(session_factory, ledger, valuation, audit, cache, dispatcher) -> TradeExecutor:
    return TradeExecutor(
        session_factory,
        ledger=ledger,
        valuation=valuation,
        audit=audit,
        cache=cache,
        dispatcher=dispatcher,
        max_conflict_retries=1,
    )


@pytest.fixture
def risk_engine(session_factory, audit, dispatcher) -> RiskEngine:
    return RiskEngine(session_factory, audit=audit, dispatcher=dispatcher)


# =============================================================================
# Helpers
# =============================================================================

@pytest.fixture
def read_state(session_factory):
    """Callable returning (portfolio, {instrument_id: position}) as committed."""

    def _read(portfolio_id: int):
        with session_factory() as session:
            portfolio = session.get(Portfolio, portfolio_id)
            positions = session.execute(
                select(Position).where(Position.portfolio_id == portfolio_id)
            ).scalars().all()
            return portfolio, {p.instrument_id: p for p in positions}

    return _read
