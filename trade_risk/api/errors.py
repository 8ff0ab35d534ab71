"""Map engine exceptions and malformed requests to HTTP responses.

Body shape: ``{"status": "error", "detail": "..."}``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from trade_risk.engine.exceptions import (
    ConcurrencyConflict,
    DuplicateResource,
    NotFound,
    TradeRiskError,
    ValidationFailure,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[TradeRiskError], int]] = [
    (NotFound, 404),
    (ValidationFailure, 400),
    (DuplicateResource, 409),
    (ConcurrencyConflict, 503),
]


def status_for(exc: TradeRiskError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return 500


async def trade_risk_error_handler(request: Request, exc: TradeRiskError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    headers = {"Retry-After": "1"} if isinstance(exc, ConcurrencyConflict) else None
    return JSONResponse(
        status_code=code,
        content={"status": "error", "detail": str(exc)},
        headers=headers,
    )


def describe_validation_errors(exc: RequestValidationError) -> str:
    """``"quantity: Input should be greater than 0; ..."`` from pydantic errors."""
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {error.get('msg')}" if loc else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed requests are bad requests, in the same envelope as engine errors."""
    return JSONResponse(
        status_code=400,
        content={"status": "error", "detail": describe_validation_errors(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TradeRiskError, trade_risk_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
