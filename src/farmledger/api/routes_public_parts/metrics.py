from __future__ import annotations

from fastapi import APIRouter, Request, Response

from farmledger.runtime.metrics import format_prometheus, metrics_enabled, observe_farm

router = APIRouter()

_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


@router.get("/metrics")
def metrics(request: Request) -> Response:
    """Farm gauges and operation counters; 404 unless FARM_METRICS_ENABLED=1."""
    if not metrics_enabled():
        return Response(status_code=404, content="not_found\n", media_type="text/plain")

    rt = getattr(request.app.state, "runtime", None)
    if rt is not None:
        status = rt.engine.status()
        observe_farm(
            pools=status["pool_count"],
            total_weight=status["total_weight"],
            emission_rate=status["emission_rate"],
        )
    return Response(content=format_prometheus(), media_type=_CONTENT_TYPE)
