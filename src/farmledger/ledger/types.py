"""farmledger.ledger.types

Per-pool accrual state and per-(pool, participant) stake state.

Both records are plain mutable dataclasses with a JSON round trip. Amounts are
ints in base units; times are integer seconds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

Json = Dict[str, Any]


def _coerce_int(v: Any, *, field: str, default: int = 0) -> int:
    if v is None:
        return int(default)
    # bool is an int subclass; disallow it explicitly
    if isinstance(v, bool):
        raise ValueError(f"schema error: field '{field}' must be int (got bool)")
    try:
        return int(v)
    except Exception as e:
        raise ValueError(f"schema error: field '{field}' must be int-coercible (got {type(v).__name__})") from e


@dataclass
class Pool:
    stake_asset: str
    weight: int = 0
    last_sync_time: int = 0
    acc_reward_per_share: int = 0
    deposit_fee_bps: int = 0
    harvest_interval: int = 0

    @staticmethod
    def from_json(j: Any) -> "Pool":
        if isinstance(j, Pool):
            return j
        if not isinstance(j, dict):
            raise ValueError("pool record must be a dict")
        return Pool(
            stake_asset=str(j.get("stake_asset") or ""),
            weight=_coerce_int(j.get("weight"), field="weight"),
            last_sync_time=_coerce_int(j.get("last_sync_time"), field="last_sync_time"),
            acc_reward_per_share=_coerce_int(j.get("acc_reward_per_share"), field="acc_reward_per_share"),
            deposit_fee_bps=_coerce_int(j.get("deposit_fee_bps"), field="deposit_fee_bps"),
            harvest_interval=_coerce_int(j.get("harvest_interval"), field="harvest_interval"),
        )

    def to_json(self) -> Json:
        # acc_reward_per_share can exceed 2**53; keep ints exact in JSON
        return {
            "stake_asset": self.stake_asset,
            "weight": int(self.weight),
            "last_sync_time": int(self.last_sync_time),
            "acc_reward_per_share": int(self.acc_reward_per_share),
            "deposit_fee_bps": int(self.deposit_fee_bps),
            "harvest_interval": int(self.harvest_interval),
        }


@dataclass
class Position:
    staked_amount: int = 0
    reward_debt: int = 0
    last_harvest_time: int = 0
    reward_locked_up: int = 0

    @staticmethod
    def from_json(j: Any) -> "Position":
        if isinstance(j, Position):
            return j
        if not isinstance(j, dict):
            raise ValueError("position record must be a dict")
        return Position(
            staked_amount=_coerce_int(j.get("staked_amount"), field="staked_amount"),
            reward_debt=_coerce_int(j.get("reward_debt"), field="reward_debt"),
            last_harvest_time=_coerce_int(j.get("last_harvest_time"), field="last_harvest_time"),
            reward_locked_up=_coerce_int(j.get("reward_locked_up"), field="reward_locked_up"),
        )

    def to_json(self) -> Json:
        return {
            "staked_amount": int(self.staked_amount),
            "reward_debt": int(self.reward_debt),
            "last_harvest_time": int(self.last_harvest_time),
            "reward_locked_up": int(self.reward_locked_up),
        }
