"""FastAPI TestClient integration tests for the Trade Risk API.

The routers run against the per-test SQLite database: every engine
dependency is replaced through ``app.dependency_overrides`` and Redis is a
MagicMock. Authentication is overridden per test via ``as_user`` except in
TestJWT, which exercises real tokens.
"""

from __future__ import annotations

import json
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm.exc import StaleDataError

from trade_risk.api import deps
from trade_risk.api.auth import create_access_token, verify_jwt
from trade_risk.api.errors import register_exception_handlers
from trade_risk.api.routes import health, instruments, portfolios, risk, trades
from trade_risk.core.config import settings
from trade_risk.engine import InstrumentCatalog, PortfolioService, TradeHistory


# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------
def _create_test_app() -> FastAPI:
    """Minimal FastAPI app with the API routers and error handlers."""
    app = FastAPI(title="Trade Risk Test")
    register_exception_handlers(app)
    app.include_router(health.router)
    app.include_router(trades.router, prefix="/api/v1")
    app.include_router(portfolios.router, prefix="/api/v1")
    app.include_router(instruments.router, prefix="/api/v1")
    app.include_router(risk.router, prefix="/api/v1")
    return app


# -------------------------------------------------------------------------
# Fixtures
# -------------------------------------------------------------------------
@pytest.fixture
def app(session_factory, executor, risk_engine, cache, audit, seed) -> FastAPI:
    app = _create_test_app()

    def _db():
        with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db] = _db
    app.dependency_overrides[deps.get_cache] = lambda: cache
    app.dependency_overrides[deps.get_trade_executor] = lambda: executor
    app.dependency_overrides[deps.get_risk_engine] = lambda: risk_engine
    app.dependency_overrides[deps.get_trade_history] = lambda: TradeHistory(session_factory)
    app.dependency_overrides[deps.get_instrument_catalog] = lambda: InstrumentCatalog(
        session_factory, cache=cache, audit=audit
    )
    app.dependency_overrides[deps.get_portfolio_service] = lambda: PortfolioService(
        session_factory, audit=audit
    )
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def as_user(app):
    """Callable that makes subsequent requests authenticate as (role, uid)."""

    def _as(role: str, uid: int | None = None):
        app.dependency_overrides[verify_jwt] = lambda: {
            "sub": f"{role.lower()}-user",
            "uid": uid,
            "role": role,
        }

    return _as


# -------------------------------------------------------------------------
# Trades
# -------------------------------------------------------------------------
class TestTrades:
    def test_trader_buys_for_self(self, client, as_user, seed):
        as_user("TRADER", seed.alice_id)
        resp = client.post(
            "/api/v1/trades",
            json={"instrument_id": seed.aapl_id, "quantity": 10, "price": 100.5, "side": "BUY"},
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "ok"
        assert body["data"]["status"] == "EXECUTED"
        assert body["data"]["price"] == "100.5000"
        assert body["data"]["user_id"] == seed.alice_id

    def test_trader_cannot_trade_for_others(self, client, as_user, seed):
        as_user("TRADER", seed.alice_id)
        resp = client.post(
            "/api/v1/trades",
            json={"user_id": seed.bob_id, "instrument_id": seed.aapl_id,
                  "quantity": 1, "price": "1", "side": "BUY"},
        )
        assert resp.status_code == 403

    def test_viewer_cannot_trade(self, client, as_user, seed):
        as_user("VIEWER", seed.alice_id)
        resp = client.post(
            "/api/v1/trades",
            json={"instrument_id": seed.aapl_id, "quantity": 1, "price": "1", "side": "BUY"},
        )
        assert resp.status_code == 403

    def test_admin_trades_on_behalf(self, client, as_user, seed):
        as_user("ADMIN")
        resp = client.post(
            "/api/v1/trades",
            json={"user_id": seed.bob_id, "instrument_id": seed.msft_id,
                  "quantity": 2, "price": "300", "side": "BUY"},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["user_id"] == seed.bob_id

    def test_admin_without_user_id(self, client, as_user, seed):
        as_user("ADMIN")
        resp = client.post(
            "/api/v1/trades",
            json={"instrument_id": seed.aapl_id, "quantity": 1, "price": "1", "side": "BUY"},
        )
        assert resp.status_code == 400

    def test_sell_without_holding_is_400(self, client, as_user, seed):
        as_user("TRADER", seed.alice_id)
        resp = client.post(
            "/api/v1/trades",
            json={"instrument_id": seed.aapl_id, "quantity": 1, "price": "1", "side": "SELL"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"status": "error", "detail": "No position held in AAPL"}

    def test_oversell_reports_available(self, client, as_user, executor, seed):
        executor.execute(seed.alice_id, seed.aapl_id, 10, Decimal("100"), "BUY")
        as_user("TRADER", seed.alice_id)
        resp = client.post(
            "/api/v1/trades",
            json={"instrument_id": seed.aapl_id, "quantity": 15, "price": "1", "side": "SELL"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Insufficient quantity. Available: 10"

    def test_unknown_instrument_is_404(self, client, as_user, seed):
        as_user("TRADER", seed.alice_id)
        resp = client.post(
            "/api/v1/trades",
            json={"instrument_id": 9999, "quantity": 1, "price": "1", "side": "BUY"},
        )
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "payload",
        [
            {"quantity": 0, "price": "1", "side": "BUY"},
            {"quantity": 1, "price": "-1", "side": "BUY"},
            {"quantity": 1, "price": "1", "side": "SHORT"},
            {"quantity": 1.5, "price": "1", "side": "BUY"},
        ],
    )
    def test_malformed_request_is_400(self, client, as_user, seed, payload):
        as_user("TRADER", seed.alice_id)
        resp = client.post("/api/v1/trades", json={"instrument_id": seed.aapl_id, **payload})
        assert resp.status_code == 400
        body = resp.json()
        assert body["status"] == "error"
        assert isinstance(body["detail"], str) and body["detail"]

    def test_zero_quantity_names_the_field(self, client, as_user, seed):
        as_user("TRADER", seed.alice_id)
        resp = client.post(
            "/api/v1/trades",
            json={"instrument_id": seed.aapl_id, "quantity": 0, "price": "1", "side": "BUY"},
        )
        assert resp.status_code == 400
        assert resp.json() == {
            "status": "error",
            "detail": "quantity: Input should be greater than 0",
        }

    def test_bad_query_param_is_400(self, client, as_user, seed):
        as_user("VIEWER")
        resp = client.get("/api/v1/trades", params={"page": -1})
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("page: ")

    def test_conflict_is_503(self, client, as_user, executor, seed, monkeypatch):
        def stale(*args, **kwargs):
            raise StaleDataError("stale")

        monkeypatch.setattr(executor.valuation, "recompute", stale)
        as_user("TRADER", seed.alice_id)
        resp = client.post(
            "/api/v1/trades",
            json={"instrument_id": seed.aapl_id, "quantity": 1, "price": "1", "side": "BUY"},
        )
        assert resp.status_code == 503
        assert resp.headers["Retry-After"] == "1"

    def test_list_trades(self, client, as_user, executor, seed):
        executor.execute(seed.alice_id, seed.aapl_id, 1, Decimal("1"), "BUY")
        executor.execute(seed.bob_id, seed.msft_id, 1, Decimal("1"), "BUY")
        as_user("VIEWER")

        resp = client.get("/api/v1/trades", params={"instrument_id": seed.aapl_id})

        assert resp.status_code == 200
        body = resp.json()
        assert len(body["data"]) == 1
        assert body["meta"]["total_elements"] == 1
        assert body["data"][0]["symbol"] == "AAPL"


# -------------------------------------------------------------------------
# Portfolios
# -------------------------------------------------------------------------
class TestPortfolios:
    def test_create_then_conflict(self, client, as_user, seed):
        as_user("ADMIN")
        resp = client.post("/api/v1/portfolios", json={"user_id": seed.carol_id})
        assert resp.status_code == 201
        assert resp.json()["data"]["total_value"] == "0.0000"

        again = client.post("/api/v1/portfolios", json={"user_id": seed.carol_id})
        assert again.status_code == 409
        assert again.json()["status"] == "error"

    def test_unknown_user_is_404(self, client, as_user, seed):
        as_user("ADMIN")
        assert client.post("/api/v1/portfolios", json={"user_id": 9999}).status_code == 404

    def test_get_populates_then_hits_cache(self, client, as_user, executor, redis_mock, seed):
        executor.execute(seed.alice_id, seed.aapl_id, 2, Decimal("100"), "BUY")
        as_user("VIEWER")

        first = client.get(f"/api/v1/portfolios/{seed.alice_portfolio_id}")
        assert first.status_code == 200
        assert first.json()["meta"] == {"cached": False}
        assert first.json()["data"]["total_value"] == "300.0000"
        key, raw = redis_mock.set.call_args.args
        assert key == f"trade_risk:portfolio:{seed.alice_portfolio_id}"

        redis_mock.get.return_value = raw
        second = client.get(f"/api/v1/portfolios/{seed.alice_portfolio_id}")
        assert second.json()["meta"] == {"cached": True}
        assert second.json()["data"] == first.json()["data"]

    def test_missing_portfolio(self, client, as_user, seed):
        as_user("VIEWER")
        resp = client.get("/api/v1/portfolios/4040")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Portfolio not found with id: 4040"

    def test_list(self, client, as_user, seed):
        as_user("VIEWER")
        body = client.get("/api/v1/portfolios").json()
        assert body["meta"]["total_elements"] == 2


# -------------------------------------------------------------------------
# Instruments
# -------------------------------------------------------------------------
class TestInstruments:
    def test_admin_creates(self, client, as_user, seed):
        as_user("ADMIN")
        resp = client.post(
            "/api/v1/instruments",
            json={"symbol": "tsla", "name": "Tesla", "current_price": "250.5"},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["symbol"] == "TSLA"
        assert resp.json()["data"]["current_price"] == "250.5000"

    def test_trader_cannot_create(self, client, as_user, seed):
        as_user("TRADER", seed.alice_id)
        resp = client.post("/api/v1/instruments", json={"symbol": "X", "name": "X"})
        assert resp.status_code == 403

    def test_duplicate_is_409(self, client, as_user, seed):
        as_user("ADMIN")
        resp = client.post("/api/v1/instruments", json={"symbol": "AAPL", "name": "Apple"})
        assert resp.status_code == 409

    def test_get_and_list(self, client, as_user, seed):
        as_user("VIEWER")
        one = client.get(f"/api/v1/instruments/{seed.privco_id}").json()
        assert one["data"]["current_price"] is None

        listing = client.get("/api/v1/instruments", params={"size": 2}).json()
        assert [i["symbol"] for i in listing["data"]] == ["AAPL", "MSFT"]
        assert listing["meta"]["total_pages"] == 2

    def test_admin_reprices_and_holder_is_revalued(
        self, client, as_user, executor, redis_mock, read_state, seed
    ):
        executor.execute(seed.alice_id, seed.aapl_id, 10, Decimal("100"), "BUY")
        redis_mock.delete.reset_mock()
        as_user("ADMIN")

        resp = client.patch(
            f"/api/v1/instruments/{seed.aapl_id}/price", json={"current_price": "200"}
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["data"]["current_price"] == "200.0000"
        assert body["meta"] == {"revalued_portfolios": [seed.alice_portfolio_id]}
        portfolio, _ = read_state(seed.alice_portfolio_id)
        assert portfolio.total_value == Decimal("2000.0000")
        deleted = {c.args[0] for c in redis_mock.delete.call_args_list}
        assert f"trade_risk:risk:{seed.alice_portfolio_id}" in deleted

    def test_trader_cannot_reprice(self, client, as_user, seed):
        as_user("TRADER", seed.alice_id)
        resp = client.patch(
            f"/api/v1/instruments/{seed.aapl_id}/price", json={"current_price": "1"}
        )
        assert resp.status_code == 403

    def test_reprice_unknown_instrument(self, client, as_user, seed):
        as_user("ADMIN")
        resp = client.patch("/api/v1/instruments/9999/price", json={"current_price": "1"})
        assert resp.status_code == 404

    def test_list_served_from_cache(self, client, as_user, redis_mock, seed):
        redis_mock.get.return_value = json.dumps(
            {"items": [{"id": 1, "symbol": "ZZZ", "name": "Cached", "current_price": None}],
             "meta": {"total_elements": 1}}
        )
        as_user("VIEWER")
        body = client.get("/api/v1/instruments").json()
        assert body["data"][0]["symbol"] == "ZZZ"


# -------------------------------------------------------------------------
# Risk
# -------------------------------------------------------------------------
class TestRisk:
    def test_empty_portfolio_plain_decimals(self, client, as_user, seed):
        as_user("VIEWER")
        resp = client.get(f"/api/v1/risk/{seed.alice_portfolio_id}")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["total_exposure"] == "0.0000"
        assert data["concentration_risk"] == "0.00000000"
        assert data["risk_score"] == "0.0000"

    def test_computed_risk_is_cached(self, client, as_user, executor, redis_mock, seed):
        executor.execute(seed.alice_id, seed.aapl_id, 1, Decimal("150"), "BUY")
        executor.execute(seed.alice_id, seed.msft_id, 1, Decimal("300"), "BUY")
        as_user("VIEWER")

        resp = client.get(f"/api/v1/risk/{seed.alice_portfolio_id}")
        data = resp.json()["data"]
        assert data["total_exposure"] == "450.0000"
        assert data["concentration_risk"] == "0.66666667"
        assert data["risk_score"] == "66.6667"
        key, _ = redis_mock.set.call_args.args
        assert key == f"trade_risk:risk:{seed.alice_portfolio_id}"

    def test_history(self, client, as_user, risk_engine, seed):
        risk_engine.calculate(seed.alice_portfolio_id)
        risk_engine.calculate(seed.alice_portfolio_id)
        as_user("VIEWER")

        body = client.get(f"/api/v1/risk/{seed.alice_portfolio_id}/history").json()
        assert len(body["data"]) == 2
        assert body["meta"]["total_elements"] == 2

    def test_unknown_portfolio(self, client, as_user, seed):
        as_user("VIEWER")
        assert client.get("/api/v1/risk/9999").status_code == 404


# -------------------------------------------------------------------------
# Health and JWT
# -------------------------------------------------------------------------
def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"
    assert body["cache"] == "connected"


class TestJWT:
    @pytest.fixture(autouse=True)
    def _secret(self, monkeypatch):
        monkeypatch.setattr(settings, "jwt_secret_key", "test-secret-key-with-enough-length-000")
        monkeypatch.setattr(settings, "debug", False)

    def test_real_token_round_trip(self, client, seed):
        token = create_access_token("alice", role="TRADER", user_id=seed.alice_id)
        resp = client.post(
            "/api/v1/trades",
            headers={"Authorization": f"Bearer {token}"},
            json={"instrument_id": seed.aapl_id, "quantity": 1, "price": "150", "side": "BUY"},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["user_id"] == seed.alice_id

    def test_missing_token(self, client, seed):
        assert client.get("/api/v1/trades").status_code == 401

    def test_expired_token(self, client, seed):
        token = create_access_token("alice", expires_delta=timedelta(seconds=-5))
        resp = client.get("/api/v1/trades", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token has expired"

    def test_garbage_token(self, client, seed):
        resp = client.get("/api/v1/trades", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401


def test_rate_limit_middleware_installed():
    from slowapi.middleware import SlowAPIMiddleware

    from trade_risk.api.main import app as main_app

    assert main_app.state.limiter is not None
    assert any(m.cls is SlowAPIMiddleware for m in main_app.user_middleware)
