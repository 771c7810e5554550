from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from farmledger.runtime.errors import FarmError


@dataclass(frozen=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def conflict(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(409, code, message, details or {})

    @staticmethod
    def too_many(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(429, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}


_FARM_STATUS: Dict[str, int] = {
    "invalid_pool": 404,
    "forbidden": 403,
    "reentrancy": 409,
    "harvest_too_early": 429,
}


def api_error_from_farm(e: FarmError) -> ApiError:
    details = e.details if isinstance(e.details, dict) else ({} if e.details is None else {"details": e.details})
    return ApiError(_FARM_STATUS.get(e.code, 400), e.code, e.reason, details)


def jsonable_errors(exc: Any) -> list[Dict[str, Any]]:
    """Pydantic validation errors reduced to JSON-safe location/message pairs."""
    out: list[Dict[str, Any]] = []
    for e in exc.errors():
        out.append({"loc": [str(p) for p in e.get("loc", ())], "msg": str(e.get("msg", "")), "type": str(e.get("type", ""))})
    return out
