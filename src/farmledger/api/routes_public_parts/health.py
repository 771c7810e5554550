from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    """Liveness only; does not touch the engine."""
    return {
        "ok": True,
        "ts_ms": int(time.time() * 1000),
        "runtime_attached": getattr(request.app.state, "runtime", None) is not None,
    }
