# src/farmledger/runtime/emission.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Sequence

from farmledger.ledger.constants import MAX_EMISSION_RATE
from farmledger.ledger.fixed_point import mul_div
from farmledger.ledger.types import Pool
from farmledger.runtime.errors import ExcessiveEmissionRate, InvalidAmount, InvalidStartTime

Json = Dict[str, Any]


def _require_non_negative_int(v: Any, field: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int) or v < 0:
        raise InvalidAmount("non_negative_int_required", {"field": field, "value": v})
    return v


@dataclass
class EmissionController:
    """Process-wide emission state.

    total_weight is derived state: it is recomputed from the pool list after
    every weight change and never adjusted incrementally.
    """

    emission_rate: int = 0
    start_time: int = 0
    total_weight: int = 0

    def recompute_total(self, pools: Sequence[Pool]) -> int:
        self.total_weight = sum(int(p.weight) for p in pools)
        return self.total_weight

    def set_rate(self, rate: int) -> int:
        r = _require_non_negative_int(rate, "emission_rate")
        if r > MAX_EMISSION_RATE:
            raise ExcessiveEmissionRate(r, MAX_EMISSION_RATE)
        prev = self.emission_rate
        self.emission_rate = r
        return prev

    def add_pool_weight(self, pools: Sequence[Pool], pool: Pool, weight: int) -> int:
        """Assign weight to a freshly appended pool; `pool` must already be in `pools`."""
        pool.weight = _require_non_negative_int(weight, "weight")
        return self.recompute_total(pools)

    def set_pool_weight(self, pools: Sequence[Pool], pool: Pool, weight: int) -> int:
        pool.weight = _require_non_negative_int(weight, "weight")
        return self.recompute_total(pools)

    def set_start_time(self, start_time: int, *, now: int) -> int:
        st = _require_non_negative_int(start_time, "start_time")
        if now >= self.start_time:
            raise InvalidStartTime("emission_already_started", {"now": now, "start_time": self.start_time})
        if st <= now:
            raise InvalidStartTime("start_time_not_in_future", {"now": now, "start_time": st})
        self.start_time = st
        return st

    def first_sync_time(self, now: int) -> int:
        """Accrual for a pool created at `now` begins no earlier than start_time."""
        return max(int(now), int(self.start_time))

    def reward_for(self, elapsed: int, weight: int) -> int:
        """elapsed * rate * weight / total_weight, truncated."""
        if self.total_weight <= 0 or weight <= 0 or elapsed <= 0:
            return 0
        return mul_div(int(elapsed) * int(self.emission_rate), int(weight), int(self.total_weight))

    def to_json(self) -> Json:
        return {
            "emission_rate": int(self.emission_rate),
            "start_time": int(self.start_time),
            "total_weight": int(self.total_weight),
        }

    @staticmethod
    def from_json(j: Any) -> "EmissionController":
        d = j if isinstance(j, dict) else {}
        return EmissionController(
            emission_rate=int(d.get("emission_rate") or 0),
            start_time=int(d.get("start_time") or 0),
            total_weight=int(d.get("total_weight") or 0),
        )
