# src/farmledger/ledger/assets.py
from __future__ import annotations

"""Asset collaborators consumed by the accrual engine.

The engine only depends on the two protocols below. TokenLedger/AssetHandle are
the in-process implementation used by the node runtime and the tests: a
multi-token balance book with supply caps, allowances, an optional per-token
transfer fee and checkpoint/restore so engine operations stay all-or-nothing.
"""

import copy
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from farmledger.ledger.constants import BPS_DENOMINATOR, UINT256_MAX
from farmledger.runtime.errors import MintRejected, TransferRejected

Json = Dict[str, Any]


@runtime_checkable
class RewardAsset(Protocol):
    def mint(self, to: str, amount: int) -> None: ...

    def transfer(self, to: str, amount: int) -> None: ...

    def balance_of(self, address: str) -> int: ...


@runtime_checkable
class StakeAsset(Protocol):
    def transfer_from(self, participant: str, to: str, amount: int) -> None: ...

    def transfer(self, to: str, amount: int) -> None: ...

    def balance_of(self, address: str) -> int: ...


def _as_amount(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise TransferRejected("amount_not_int", {"type": type(v).__name__})
    if v < 0 or v > UINT256_MAX:
        raise TransferRejected("amount_out_of_range", {"amount": v})
    return v


class TokenLedger:
    """Balances for many tokens keyed by token id."""

    def __init__(self) -> None:
        self._tokens: Dict[str, Json] = {}

    def register(
        self,
        token_id: str,
        *,
        minter: Optional[str] = None,
        supply_cap: Optional[int] = None,
        transfer_fee_bps: int = 0,
    ) -> None:
        t = str(token_id).strip()
        if not t:
            raise ValueError("token_id must be non-empty")
        if t in self._tokens:
            raise ValueError(f"token already registered: {t}")
        if not (0 <= int(transfer_fee_bps) < BPS_DENOMINATOR):
            raise ValueError("transfer_fee_bps must be 0..9999")
        self._tokens[t] = {
            "minter": minter,
            "supply_cap": None if supply_cap is None else int(supply_cap),
            "transfer_fee_bps": int(transfer_fee_bps),
            "total_supply": 0,
            "balances": {},
            "allowances": {},
        }

    def has_token(self, token_id: str) -> bool:
        return str(token_id) in self._tokens

    def _token(self, token_id: str) -> Json:
        tok = self._tokens.get(str(token_id))
        if tok is None:
            raise TransferRejected("unknown_token", {"token": token_id})
        return tok

    def total_supply(self, token_id: str) -> int:
        return int(self._token(token_id)["total_supply"])

    def balance_of(self, token_id: str, address: str) -> int:
        return int(self._token(token_id)["balances"].get(str(address), 0))

    def allowance(self, token_id: str, owner: str, spender: str) -> int:
        allowances = self._token(token_id)["allowances"]
        return int(allowances.get(str(owner), {}).get(str(spender), 0))

    def approve(self, token_id: str, owner: str, spender: str, amount: int) -> None:
        tok = self._token(token_id)
        tok["allowances"].setdefault(str(owner), {})[str(spender)] = _as_amount(amount)

    def mint(self, token_id: str, *, minter: str, to: str, amount: int) -> None:
        tok = self._token(token_id)
        amt = _as_amount(amount)
        if tok["minter"] is not None and str(minter) != tok["minter"]:
            raise MintRejected("not_minter", {"token": token_id, "caller": minter})
        cap = tok["supply_cap"]
        new_supply = int(tok["total_supply"]) + amt
        if cap is not None and new_supply > cap:
            raise MintRejected(
                "supply_cap_exceeded",
                {"token": token_id, "supply": tok["total_supply"], "amount": amt, "cap": cap},
            )
        tok["total_supply"] = new_supply
        bals = tok["balances"]
        bals[str(to)] = int(bals.get(str(to), 0)) + amt

    def transfer(self, token_id: str, *, sender: str, to: str, amount: int) -> int:
        """Move `amount` from sender; returns what the recipient actually received."""
        tok = self._token(token_id)
        amt = _as_amount(amount)
        bals = tok["balances"]
        have = int(bals.get(str(sender), 0))
        if have < amt:
            raise TransferRejected(
                "insufficient_funds",
                {"token": token_id, "sender": sender, "balance": have, "amount": amt},
            )
        fee = amt * int(tok["transfer_fee_bps"]) // BPS_DENOMINATOR
        bals[str(sender)] = have - amt
        bals[str(to)] = int(bals.get(str(to), 0)) + (amt - fee)
        # fee is burned
        tok["total_supply"] = int(tok["total_supply"]) - fee
        return amt - fee

    def spend_allowance(self, token_id: str, *, owner: str, spender: str, amount: int) -> None:
        tok = self._token(token_id)
        amt = _as_amount(amount)
        current = self.allowance(token_id, owner, spender)
        if current == UINT256_MAX:
            return
        if current < amt:
            raise TransferRejected(
                "allowance_exceeded",
                {"token": token_id, "owner": owner, "spender": spender, "allowance": current, "amount": amt},
            )
        tok["allowances"].setdefault(str(owner), {})[str(spender)] = current - amt

    def checkpoint(self) -> Json:
        return copy.deepcopy(self._tokens)

    def restore(self, token: Json) -> None:
        self._tokens = copy.deepcopy(token)

    def to_json(self) -> Json:
        return copy.deepcopy(self._tokens)

    @classmethod
    def from_json(cls, raw: Any) -> "TokenLedger":
        led = cls()
        if isinstance(raw, dict):
            for tid, tok in raw.items():
                if not isinstance(tok, dict):
                    continue
                led._tokens[str(tid)] = {
                    "minter": tok.get("minter"),
                    "supply_cap": tok.get("supply_cap"),
                    "transfer_fee_bps": int(tok.get("transfer_fee_bps") or 0),
                    "total_supply": int(tok.get("total_supply") or 0),
                    "balances": {str(k): int(v) for k, v in dict(tok.get("balances") or {}).items()},
                    "allowances": {
                        str(o): {str(s): int(a) for s, a in dict(sp or {}).items()}
                        for o, sp in dict(tok.get("allowances") or {}).items()
                    },
                }
        return led


class AssetHandle:
    """A token of a TokenLedger seen from one holder (usually the engine).

    Implements both RewardAsset and StakeAsset.
    """

    def __init__(self, ledger: TokenLedger, token_id: str, *, holder: str) -> None:
        self.ledger = ledger
        self.token_id = str(token_id)
        self.holder = str(holder)

    @property
    def transaction_scope(self) -> TokenLedger:
        return self.ledger

    def mint(self, to: str, amount: int) -> None:
        self.ledger.mint(self.token_id, minter=self.holder, to=to, amount=amount)

    def transfer(self, to: str, amount: int) -> None:
        self.ledger.transfer(self.token_id, sender=self.holder, to=to, amount=amount)

    def transfer_from(self, participant: str, to: str, amount: int) -> None:
        self.ledger.spend_allowance(self.token_id, owner=participant, spender=self.holder, amount=amount)
        self.ledger.transfer(self.token_id, sender=participant, to=to, amount=amount)

    def balance_of(self, address: str) -> int:
        return self.ledger.balance_of(self.token_id, address)

    def checkpoint(self) -> Json:
        return self.ledger.checkpoint()

    def restore(self, token: Json) -> None:
        self.ledger.restore(token)
