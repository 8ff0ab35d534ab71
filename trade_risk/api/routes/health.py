"""Health-check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from trade_risk.api.deps import get_cache, get_db
from trade_risk.cache import PortfolioCache

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(
    session: Session = Depends(get_db),
    cache: PortfolioCache = Depends(get_cache),
) -> dict:
    """Liveness probe -- verifies the database and Redis connections."""
    db_status = "disconnected"
    try:
        session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as exc:
        db_status = f"disconnected: {exc}"

    cache_status = "connected" if cache.ping() else "disconnected"

    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "database": db_status,
        "cache": cache_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
