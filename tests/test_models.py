"""Unit tests for the SQLAlchemy models.

Schema checks (columns, keys, constraints, version counters) use
sqlalchemy.inspect() on mapper metadata; no database connection needed.
"""

from sqlalchemy import CheckConstraint, Numeric, UniqueConstraint
from sqlalchemy import inspect as sa_inspect

from trade_risk.core.models import (
    AuditLog,
    Instrument,
    Portfolio,
    Position,
    RiskMetric,
    Trade,
    User,
)

# ── Helpers ──────────────────────────────────────────────────────────────


def _column_names(model_class):
    mapper = sa_inspect(model_class)
    return {c.key for c in mapper.column_attrs}


def _numeric_scale(model_class, column):
    col_type = model_class.__table__.c[column].type
    assert isinstance(col_type, Numeric)
    return col_type.scale


# ── Tables ───────────────────────────────────────────────────────────────


def test_tablenames():
    assert User.__tablename__ == "users"
    assert Instrument.__tablename__ == "instruments"
    assert Portfolio.__tablename__ == "portfolios"
    assert Position.__tablename__ == "positions"
    assert Trade.__tablename__ == "trades"
    assert RiskMetric.__tablename__ == "risk_metrics"
    assert AuditLog.__tablename__ == "audit_logs"


class TestPortfolio:
    def test_columns(self):
        assert {"id", "user_id", "total_value", "version"} <= _column_names(Portfolio)

    def test_version_counter(self):
        mapper = sa_inspect(Portfolio)
        assert mapper.version_id_col is Portfolio.__table__.c.version

    def test_one_portfolio_per_user(self):
        assert Portfolio.__table__.c.user_id.unique

    def test_money_scale(self):
        assert _numeric_scale(Portfolio, "total_value") == 4


class TestPosition:
    def test_columns(self):
        cols = _column_names(Position)
        for field in ("portfolio_id", "instrument_id", "quantity", "avg_price", "version"):
            assert field in cols, f"Missing position field: {field}"

    def test_version_counter(self):
        assert sa_inspect(Position).version_id_col is Position.__table__.c.version

    def test_unique_holding(self):
        uniques = [
            c for c in Position.__table__.constraints if isinstance(c, UniqueConstraint)
        ]
        assert any(
            {col.name for col in c.columns} == {"portfolio_id", "instrument_id"}
            for c in uniques
        )

    def test_quantity_positive_check(self):
        checks = [
            c for c in Position.__table__.constraints if isinstance(c, CheckConstraint)
        ]
        assert any("quantity > 0" in str(c.sqltext) for c in checks)


class TestTradeAndRisk:
    def test_trade_columns(self):
        cols = _column_names(Trade)
        assert {"user_id", "instrument_id", "quantity", "price", "side", "status", "timestamp"} <= cols

    def test_risk_metric_scales(self):
        assert _numeric_scale(RiskMetric, "total_exposure") == 4
        assert _numeric_scale(RiskMetric, "concentration_risk") == 8
        assert _numeric_scale(RiskMetric, "risk_score") == 4

    def test_instrument_price_nullable(self):
        assert Instrument.__table__.c.current_price.nullable

    def test_audit_user_has_no_foreign_key(self):
        assert not AuditLog.__table__.c.user_id.foreign_keys
