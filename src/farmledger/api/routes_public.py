# src/farmledger/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from farmledger.api.routes_public_parts.health import router as health_router
from farmledger.api.routes_public_parts.metrics import router as metrics_router
from farmledger.api.routes_public_parts.pools import router as pools_router
from farmledger.api.routes_public_parts.status import router as status_router
from farmledger.api.routes_public_parts.tx import router as tx_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(status_router, prefix="/v1", tags=["status"])
public_router.include_router(pools_router, prefix="/v1", tags=["pools"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
