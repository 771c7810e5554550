from __future__ import annotations

"""Pydantic request schemas for the public API.

These exist only for HTTP input validation; the tx payload rules live in
farmledger.runtime.dispatch.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., min_length=1, description="e.g. FARM_DEPOSIT")
    signer: str = Field(..., min_length=1, description="Participant address (0x...)")
    nonce: int = Field(..., ge=1, description="Per-signer, strictly increasing")
    payload: Dict[str, Any] = Field(default_factory=dict)

    sig: str = Field(default="", description="Hex Ed25519 signature over the canonical tx message")
    pubkey: str = Field(default="", description="Hex Ed25519 public key of the signer")

    model_config = {"extra": "forbid"}
