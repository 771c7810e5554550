from __future__ import annotations

import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from farmledger.api.errors import ApiError, api_error_from_farm, jsonable_errors
from farmledger.api.routes_public import public_router
from farmledger.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from farmledger.runtime.engine_boot import FarmRuntime
from farmledger.runtime.engine_boot import build_runtime as _build_runtime
from farmledger.runtime.errors import FarmError
from farmledger.runtime.farm_config import load_farm_config


def build_runtime() -> FarmRuntime:
    """Build the farm runtime for the API.

    This wrapper exists so tests can monkeypatch `farmledger.api.app.build_runtime`
    without reaching into runtime modules.
    """
    return _build_runtime(load_farm_config())


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load farm config + attach the runtime
      - False: keep lightweight for unit tests / import-time validation
    """
    mode = os.environ.get("FARM_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Farm Ledger API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Farm Ledger API")

    app.state.runtime = build_runtime() if boot_runtime else None

    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        err = ApiError.bad_request("bad_request", "request validation failed", {"errors": jsonable_errors(exc)})
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    @app.exception_handler(FarmError)
    async def _farm_error(_request: Request, exc: FarmError) -> JSONResponse:
        err = api_error_from_farm(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    configure_structured_logging()
    app.add_middleware(RequestLogMiddleware)

    app.include_router(public_router)

    return app
