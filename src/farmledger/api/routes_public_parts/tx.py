from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Request

from farmledger.api.errors import ApiError
from farmledger.api.routes_public_parts.common import _runtime
from farmledger.api.schemas import TxSubmitRequest
from farmledger.crypto.sig import verify_tx_envelope_dict
from farmledger.runtime.dispatch import apply_tx
from farmledger.runtime.farm_logging import log_event

router = APIRouter()

Json = Dict[str, Any]

log = logging.getLogger("farmledger.api.tx")


@router.post("/tx/submit")
def tx_submit(request: Request, body: TxSubmitRequest) -> Json:
    """Verify and apply one signed tx envelope.

    Applied synchronously; the response carries the operation receipt.
    Engine failures are rendered by the FarmError handler.
    """
    rt = _runtime(request)
    env = body.model_dump()
    request.state.tx_type = env["tx_type"]
    request.state.signer = env["signer"]
    request.state.nonce = env["nonce"]

    if not rt.cfg.allow_unsigned_txs:
        ok, reason = verify_tx_envelope_dict(env)
        if not ok:
            log_event(log, "tx_sig_rejected", level=logging.WARNING, reason=reason, signer=env.get("signer"))
            raise ApiError.forbidden("bad_signature", reason, {"tx_type": env.get("tx_type")})

    receipt = apply_tx(rt.engine, env)
    return {"ok": True, "receipt": receipt}
