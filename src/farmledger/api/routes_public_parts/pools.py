from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from farmledger.api.routes_public_parts.common import _engine

router = APIRouter()

Json = Dict[str, Any]


@router.get("/pools")
def pools(request: Request) -> Json:
    return {"ok": True, "pools": _engine(request).pools_info()}


@router.get("/pools/{pid}")
def pool(request: Request, pid: int) -> Json:
    return {"ok": True, "pool": _engine(request).pool_info(pid)}


@router.get("/pools/{pid}/positions/{account}")
def position(request: Request, pid: int, account: str) -> Json:
    """Position record plus pending entitlement and cooldown status at now."""
    return {"ok": True, "position": _engine(request).position_info(pid, account)}
