from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class FarmError(Exception):
    """Canonical error type for accrual engine failures.

    Any FarmError raised inside an engine operation aborts the whole operation;
    the engine restores every checkpoint taken before it started.
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class InvalidPool(FarmError):
    def __init__(self, pid: Any) -> None:
        super().__init__("invalid_pool", "pool_not_found", {"pid": pid})


class InvalidAmount(FarmError):
    def __init__(self, reason: str = "amount_invalid", details: Any | None = None) -> None:
        super().__init__("invalid_amount", reason, details)


class InsufficientBalance(InvalidAmount):
    def __init__(self, requested: int, staked: int) -> None:
        FarmError.__init__(
            self,
            "insufficient_balance",
            "withdraw_exceeds_stake",
            {"requested": int(requested), "staked": int(staked)},
        )


class ExcessiveDepositFee(FarmError):
    def __init__(self, fee_bps: int, cap_bps: int) -> None:
        super().__init__("excessive_deposit_fee", "deposit_fee_above_cap", {"fee_bps": fee_bps, "cap_bps": cap_bps})


class ExcessiveHarvestInterval(FarmError):
    def __init__(self, interval: int, cap: int) -> None:
        super().__init__("excessive_harvest_interval", "harvest_interval_above_cap", {"interval": interval, "cap": cap})


class ExcessiveEmissionRate(FarmError):
    def __init__(self, rate: int, cap: int) -> None:
        super().__init__("excessive_emission_rate", "emission_rate_above_cap", {"rate": rate, "cap": cap})


class ZeroAddress(FarmError):
    def __init__(self, field: str) -> None:
        super().__init__("zero_address", "address_required", {"field": field})


class DuplicatePool(FarmError):
    def __init__(self, stake_asset: str, reason: str = "stake_asset_already_pooled") -> None:
        super().__init__("duplicate_pool", reason, {"stake_asset": stake_asset})


class HarvestTooEarly(FarmError):
    def __init__(self, *, now: int, last_harvest_time: int, interval: int) -> None:
        super().__init__(
            "harvest_too_early",
            "harvest_cooldown_active",
            {
                "now": int(now),
                "last_harvest_time": int(last_harvest_time),
                "interval": int(interval),
                "next_harvest_time": int(last_harvest_time) + int(interval),
            },
        )


class Unauthorized(FarmError):
    def __init__(self, caller: str, capability: str) -> None:
        super().__init__("forbidden", "capability_required", {"caller": caller, "capability": capability})


class ReentrantCall(FarmError):
    def __init__(self, op: str, active: str) -> None:
        super().__init__("reentrancy", "reentrant_call", {"op": op, "active_op": active})


class ArithmeticOverflow(FarmError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("overflow", reason, details)


class InvalidStartTime(FarmError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("invalid_start_time", reason, details)


class AssetError(FarmError):
    """Collaborator (reward/stake asset) rejection. Propagates unchanged."""

    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("asset_rejected", reason, details)


class MintRejected(AssetError):
    pass


class TransferRejected(AssetError):
    pass


class InvalidTx(FarmError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("invalid_tx", reason, details)
