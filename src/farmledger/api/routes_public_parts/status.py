from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from farmledger.api.routes_public_parts.common import _engine, _runtime

router = APIRouter()


@router.get("/status")
def status(request: Request) -> Dict[str, Any]:
    rt = _runtime(request)
    return {"ok": True, "mode": rt.cfg.mode, **_engine(request).status()}
