# src/farmledger/api/structured_logging.py
from __future__ import annotations

import json
import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from farmledger.runtime.farm_logging import log_event

Json = Dict[str, Any]

# Request attributes set by routes and copied into the access log line.
_TX_FIELDS = ("tx_type", "signer", "nonce")


class JsonLineFormatter(logging.Formatter):
    """Pass farm JSONL events through; wrap anything else (uvicorn, libraries)."""

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if msg.startswith("{") and msg.endswith("}"):
            return msg
        payload: Json = {
            "ts_ms": int(record.created * 1000),
            "event": "log",
            "logger": record.name,
            "level": record.levelname,
            "msg": msg,
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Route all stdlib logging to stdout as JSON lines.

    Level comes from the argument, else FARM_LOG_LEVEL (default INFO).
    Repeated calls only adjust the level.
    """
    name = (level_name or os.environ.get("FARM_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, "_farm_configured", False):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLineFormatter())
    root.handlers = [handler]
    setattr(root, "_farm_configured", True)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per request, tagged with the tx it carried.

    FARM_LOG_REQUESTS=0 disables it. Responses carry x-request-id (echoed
    from the request when the client sent one).
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("FARM_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in {"0", "false", "no", "n", "off"}
        self._logger = logging.getLogger("farmledger.http")

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        if not self._enabled:
            response = await call_next(request)
            response.headers.setdefault("x-request-id", request_id)
            return response

        started = time.perf_counter()
        status = 500
        response: Optional[Response] = None
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers.setdefault("x-request-id", request_id)
            return response
        finally:
            fields: Json = {k: getattr(request.state, k) for k in _TX_FIELDS if hasattr(request.state, k)}
            log_event(
                self._logger,
                "http_request",
                level=logging.WARNING if status >= 500 else logging.INFO,
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status=status,
                duration_ms=round((time.perf_counter() - started) * 1000, 3),
                **fields,
            )
