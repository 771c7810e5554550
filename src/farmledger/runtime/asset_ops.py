# src/farmledger/runtime/asset_ops.py
from __future__ import annotations

"""Participant-facing operations on the in-process token ledger.

Stake tokens issued by the runtime are minted by their minter (the farm owner)
and moved or approved by their holders. The reward token is minted only by
the engine during pool syncs, and engine custody is never spendable through
these operations.
"""

from typing import Any, Dict

from farmledger.ledger.assets import TokenLedger
from farmledger.ledger.constants import ZERO_ADDRESS
from farmledger.runtime.errors import AssetError, MintRejected, ZeroAddress

Json = Dict[str, Any]


def _require_address(v: Any, field: str) -> str:
    s = v.strip() if isinstance(v, str) else ""
    if not s or s == ZERO_ADDRESS:
        raise ZeroAddress(field)
    return s


class AssetOps:
    def __init__(self, *, ledger: TokenLedger, reward_asset_id: str, engine_address: str) -> None:
        self._ledger = ledger
        self._reward_asset_id = str(reward_asset_id)
        self._engine_address = str(engine_address)

    def _require_holder(self, caller: str) -> str:
        who = _require_address(caller, "caller")
        if who == self._engine_address:
            raise AssetError("engine_custody_locked", {"caller": who})
        return who

    def mint(self, caller: str, token: str, to: str, amount: int) -> Json:
        if str(token) == self._reward_asset_id:
            raise MintRejected("reward_minted_by_engine_only", {"token": token, "caller": caller})
        who = self._require_holder(caller)
        dest = _require_address(to, "to")
        self._ledger.mint(token, minter=who, to=dest, amount=amount)
        return {"token": str(token), "to": dest, "amount": int(amount), "total_supply": self._ledger.total_supply(token)}

    def transfer(self, caller: str, token: str, to: str, amount: int) -> Json:
        who = self._require_holder(caller)
        dest = _require_address(to, "to")
        received = self._ledger.transfer(token, sender=who, to=dest, amount=amount)
        return {"token": str(token), "to": dest, "amount": int(amount), "received": int(received)}

    def approve(self, caller: str, token: str, spender: str, amount: int) -> Json:
        who = self._require_holder(caller)
        sp = _require_address(spender, "spender")
        self._ledger.approve(token, who, sp, amount)
        return {"token": str(token), "spender": sp, "allowance": self._ledger.allowance(token, who, sp)}
