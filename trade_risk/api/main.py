"""FastAPI application entry-point for the Trade Risk API.

Configures CORS, rate limiting, engine error handlers, lifespan
startup/shutdown, and mounts all route modules.
Run with:  uvicorn trade_risk.api.main:app --reload --host 0.0.0.0 --port 8000
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text

from trade_risk.api.deps import shutdown_services
from trade_risk.api.errors import register_exception_handlers
from trade_risk.api.routes import health, instruments, portfolios, risk, trades
from trade_risk.core.config import settings
from trade_risk.core.database import sync_engine
from trade_risk.core.redis import close_redis
from trade_risk.core.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan -- run once at startup / shutdown
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Test the database connection on startup; release resources on shutdown."""
    configure_logging()
    try:
        with sync_engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection verified")
    except Exception as exc:
        logger.error("Database connection failed: %s", exc)

    yield

    # Shutdown: let queued audit/cache side effects finish first
    shutdown_services()
    close_redis()
    sync_engine.dispose()
    logger.info("Database engine disposed")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
openapi_tags = [
    {"name": "Health", "description": "Health check endpoints"},
    {"name": "Trades", "description": "Trade execution and history"},
    {"name": "Portfolios", "description": "Portfolios, positions and valuation"},
    {"name": "Instruments", "description": "Instrument catalog"},
    {"name": "Risk", "description": "Exposure, concentration and risk snapshots"},
]

app = FastAPI(
    title="Trade Risk API",
    version="0.1.0",
    description=(
        "REST API for trade execution with consistent positions, "
        "portfolio valuation and risk snapshots."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=openapi_tags,
)

# Rate limiting
limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Engine errors -> 4xx/503
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------
_allowed_origins = [
    "http://localhost:3000",
    "http://localhost:8000",
]
if settings.allowed_origins:
    _allowed_origins.extend(
        o.strip() for o in settings.allowed_origins.split(",") if o.strip()
    )
if settings.debug:
    _allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
# Health endpoints live at the root (no prefix)
app.include_router(health.router)

# All data endpoints sit under /api/v1
app.include_router(trades.router, prefix="/api/v1")
app.include_router(portfolios.router, prefix="/api/v1")
app.include_router(instruments.router, prefix="/api/v1")
app.include_router(risk.router, prefix="/api/v1")
