from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from farmledger.runtime.errors import InvalidTx


FARM_DEPOSIT = "FARM_DEPOSIT"
FARM_WITHDRAW = "FARM_WITHDRAW"
FARM_HARVEST = "FARM_HARVEST"
FARM_EMERGENCY_EXIT = "FARM_EMERGENCY_EXIT"
FARM_POOL_SYNC = "FARM_POOL_SYNC"
FARM_MASS_SYNC = "FARM_MASS_SYNC"
POOL_ADD = "POOL_ADD"
POOL_SET = "POOL_SET"
EMISSION_RATE_SET = "EMISSION_RATE_SET"
EMISSION_START_SET = "EMISSION_START_SET"
FEE_ADDRESS_SET = "FEE_ADDRESS_SET"
ASSET_MINT = "ASSET_MINT"
ASSET_TRANSFER = "ASSET_TRANSFER"
ASSET_APPROVE = "ASSET_APPROVE"

SUPPORTED_TX_TYPES = frozenset(
    {
        FARM_DEPOSIT,
        FARM_WITHDRAW,
        FARM_HARVEST,
        FARM_EMERGENCY_EXIT,
        FARM_POOL_SYNC,
        FARM_MASS_SYNC,
        POOL_ADD,
        POOL_SET,
        EMISSION_RATE_SET,
        EMISSION_START_SET,
        FEE_ADDRESS_SET,
        ASSET_MINT,
        ASSET_TRANSFER,
        ASSET_APPROVE,
    }
)


@dataclass(frozen=True)
class TxEnvelope:
    tx_type: str
    signer: str
    nonce: int
    payload: Dict[str, Any]
    sig: str = ""
    pubkey: str = ""

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            raise InvalidTx("envelope_not_object", {"type": type(j).__name__})
        nonce = j.get("nonce", 0)
        if isinstance(nonce, bool) or not isinstance(nonce, int):
            raise InvalidTx("nonce_not_int", {"nonce": nonce})
        payload = j.get("payload", {})
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise InvalidTx("payload_not_object", {"type": type(payload).__name__})
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "") or "").strip().upper(),
            signer=str(j.get("signer", "") or "").strip(),
            nonce=nonce,
            payload=dict(payload),
            sig=str(j.get("sig", "") or ""),
            pubkey=str(j.get("pubkey", "") or ""),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "tx_type": self.tx_type,
            "signer": self.signer,
            "nonce": self.nonce,
            "payload": self.payload,
            "sig": self.sig,
            "pubkey": self.pubkey,
        }
