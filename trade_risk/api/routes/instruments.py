"""Instrument catalog endpoints.

Provides:
- POST /instruments        -- register an instrument (ADMIN)
- GET  /instruments/{id}   -- single instrument (cached)
- GET  /instruments        -- paginated catalog (cached per page)
- PATCH /instruments/{id}/price -- price refresh, revalues holders (ADMIN)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from trade_risk.api.auth import Role, require_role
from trade_risk.api.deps import get_cache, get_instrument_catalog
from trade_risk.api.schemas.trade_schemas import (
    APIEnvelope,
    InstrumentCreateRequest,
    InstrumentPriceUpdateRequest,
    InstrumentResponse,
)
from trade_risk.cache import PortfolioCache
from trade_risk.core.enums import CacheScope
from trade_risk.engine import InstrumentCatalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/instruments", tags=["Instruments"])


@router.post("", response_model=APIEnvelope[InstrumentResponse], status_code=201)
def create_instrument(
    body: InstrumentCreateRequest,
    catalog: InstrumentCatalog = Depends(get_instrument_catalog),
    user: dict = Depends(require_role(Role.ADMIN)),
):
    instrument = catalog.create(
        symbol=body.symbol,
        name=body.name,
        current_price=body.current_price,
        user_id=user.get("uid"),
    )
    return APIEnvelope(data=InstrumentResponse(**instrument))


@router.get("/{instrument_id}", response_model=APIEnvelope[InstrumentResponse])
def get_instrument(
    instrument_id: int,
    catalog: InstrumentCatalog = Depends(get_instrument_catalog),
    cache: PortfolioCache = Depends(get_cache),
    user: dict = Depends(require_role(Role.VIEWER)),
):
    cached = cache.get(CacheScope.INSTRUMENTS, instrument_id)
    if cached is not None:
        return APIEnvelope(data=InstrumentResponse(**cached), meta={"cached": True})

    response = InstrumentResponse(**catalog.get(instrument_id))
    cache.set(CacheScope.INSTRUMENTS, instrument_id, response.model_dump(mode="json"))
    return APIEnvelope(data=response, meta={"cached": False})


@router.get("", response_model=APIEnvelope[list[InstrumentResponse]])
def list_instruments(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    catalog: InstrumentCatalog = Depends(get_instrument_catalog),
    cache: PortfolioCache = Depends(get_cache),
    user: dict = Depends(require_role(Role.VIEWER)),
):
    cached = cache.get_instrument_page(page, size)
    if cached is not None:
        return APIEnvelope(
            data=[InstrumentResponse(**i) for i in cached["items"]],
            meta=cached["meta"],
        )

    result = catalog.list(page=page, size=size)
    items = [InstrumentResponse(**i) for i in result.items]
    cache.set_instrument_page(
        page,
        size,
        {"items": [i.model_dump(mode="json") for i in items], "meta": result.meta()},
    )
    return APIEnvelope(data=items, meta=result.meta())


@router.patch("/{instrument_id}/price", response_model=APIEnvelope[InstrumentResponse])
def update_instrument_price(
    instrument_id: int,
    body: InstrumentPriceUpdateRequest,
    catalog: InstrumentCatalog = Depends(get_instrument_catalog),
    user: dict = Depends(require_role(Role.ADMIN)),
):
    result = catalog.update_price(instrument_id, body.current_price, user_id=user.get("uid"))
    revalued = result.pop("revalued_portfolios")
    logger.info(
        "Instrument %s repriced; %d portfolio(s) revalued", instrument_id, len(revalued)
    )
    return APIEnvelope(
        data=InstrumentResponse(**result),
        meta={"revalued_portfolios": revalued},
    )
