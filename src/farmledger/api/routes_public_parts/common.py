from __future__ import annotations

from fastapi import Request

from farmledger.api.errors import ApiError
from farmledger.runtime.engine import FarmEngine
from farmledger.runtime.engine_boot import FarmRuntime


def _runtime(request: Request) -> FarmRuntime:
    rt = getattr(request.app.state, "runtime", None)
    if rt is None:
        raise ApiError.internal("not_ready", "farm runtime not attached to app.state", {})
    return rt


def _engine(request: Request) -> FarmEngine:
    return _runtime(request).engine
