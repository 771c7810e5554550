# src/farmledger/runtime/position_manager.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from farmledger.ledger.assets import RewardAsset, StakeAsset
from farmledger.ledger.constants import BPS_DENOMINATOR, UINT256_MAX, ZERO_ADDRESS
from farmledger.ledger.fixed_point import bps_of, checked_add, checked_sub, scaled_share
from farmledger.ledger.state import FarmState
from farmledger.ledger.types import Pool, Position
from farmledger.runtime.accumulator import RewardAccumulator
from farmledger.runtime.errors import FarmError, InsufficientBalance, InvalidAmount, ZeroAddress
from farmledger.runtime.farm_logging import log_event
from farmledger.runtime.harvest_guard import HarvestGuard

Json = Dict[str, Any]

log = logging.getLogger("farmledger.positions")


def _require_address(v: Any, field: str) -> str:
    s = v.strip() if isinstance(v, str) else ""
    if not s or s == ZERO_ADDRESS:
        raise ZeroAddress(field)
    return s


def _require_amount(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise InvalidAmount("amount_not_int", {"type": type(v).__name__})
    if v < 0 or v > UINT256_MAX:
        raise InvalidAmount("amount_out_of_range", {"amount": v})
    return v


def accrued(pool: Pool, pos: Position, acc_per_share: int | None = None) -> int:
    """staked * acc / PRECISION - reward_debt for the given (or current) accumulator."""
    acc = pool.acc_reward_per_share if acc_per_share is None else acc_per_share
    return checked_sub(scaled_share(pos.staked_amount, acc), pos.reward_debt)


class PositionManager:
    """Deposit / withdraw / harvest / emergency exit on one (pool, participant).

    Every entitlement-touching operation syncs the pool first and recomputes
    reward_debt from the then-current accumulator last. The caller (FarmEngine)
    owns atomicity and the reentrancy guard.
    """

    def __init__(
        self,
        *,
        state: FarmState,
        accumulator: RewardAccumulator,
        reward_asset: RewardAsset,
        stake_assets: Callable[[str], StakeAsset],
        engine_address: str,
    ) -> None:
        self._state = state
        self._acc = accumulator
        self._reward_asset = reward_asset
        self._stake_assets = stake_assets
        self._engine_address = str(engine_address)

    # ----------------------------
    # Payout helpers
    # ----------------------------

    def _safe_reward_transfer(self, to: str, amount: int) -> int:
        """Pay at most what custody holds; rounding shortfalls are dropped."""
        if amount <= 0:
            return 0
        held = int(self._reward_asset.balance_of(self._engine_address))
        pay = min(int(amount), held)
        if pay > 0:
            self._reward_asset.transfer(to, pay)
        return pay

    def _settle(self, pool: Pool, pos: Position, participant: str, now: int, *, strict: bool) -> Json:
        """Pay pending + locked-up entitlement through the harvest cooldown.

        strict=True (explicit harvest): cooldown violations raise HarvestTooEarly.
        strict=False (deposit/withdraw): inside the cooldown the entitlement is
        moved to reward_locked_up instead, so the stake change still proceeds.
        """
        pending = accrued(pool, pos)
        total = pending + pos.reward_locked_up

        if strict:
            HarvestGuard.check_and_record(pos, now, pool.harvest_interval)
        elif total <= 0:
            return {"pending": 0, "paid": 0, "locked_up": int(pos.reward_locked_up)}
        elif not HarvestGuard.can_harvest(pos, now, pool.harvest_interval):
            pos.reward_locked_up = checked_add(pos.reward_locked_up, pending)
            return {
                "pending": int(pending),
                "paid": 0,
                "locked_up": int(pos.reward_locked_up),
                "next_harvest_time": HarvestGuard.next_harvest_time(pos, pool.harvest_interval),
            }
        else:
            pos.last_harvest_time = int(now)

        pos.reward_locked_up = 0
        paid = self._safe_reward_transfer(participant, total)
        return {"pending": int(pending), "paid": int(paid), "locked_up": 0}

    def _forfeit_estimate(self, pool: Pool, pos: Position, pid: int, now: int) -> int:
        """Best-effort size of what an emergency exit gives up.

        Falls back to the last synced accumulator, then to the locked-up
        amount alone, when the accrual math overflows.
        """
        locked = int(pos.reward_locked_up)
        for acc in (lambda: self._acc.preview_acc_per_share(pool, now), lambda: pool.acc_reward_per_share):
            try:
                return accrued(pool, pos, acc()) + locked
            except FarmError as e:
                log_event(log, "farm_forfeit_estimate_degraded", level=logging.WARNING, pid=pid, code=e.code, reason=e.reason)
        return locked

    # ----------------------------
    # Operations
    # ----------------------------

    def deposit(self, pid: int, participant: str, amount: int, *, now: int) -> Json:
        who = _require_address(participant, "participant")
        amt = _require_amount(amount)
        pool = self._state.pool(pid)
        pos = self._state.position(pid, who)

        self._acc.sync(pool, now)

        settled: Json = {"pending": 0, "paid": 0, "locked_up": int(pos.reward_locked_up)}
        if pos.staked_amount > 0:
            settled = self._settle(pool, pos, who, now, strict=False)

        fee = 0
        if amt > 0:
            stake = self._stake_assets(pool.stake_asset)
            # Nominal amount is credited; fee-on-transfer stake assets over-credit.
            stake.transfer_from(who, self._engine_address, amt)
            if pool.deposit_fee_bps > 0:
                fee = bps_of(amt, pool.deposit_fee_bps, BPS_DENOMINATOR)
                if fee > 0:
                    stake.transfer(_require_address(self._state.fee_address, "fee_address"), fee)
            pos.staked_amount = checked_add(pos.staked_amount, amt - fee)

        pos.reward_debt = scaled_share(pos.staked_amount, pool.acc_reward_per_share)
        return {
            "pid": int(pid),
            "participant": who,
            "amount": int(amt),
            "fee": int(fee),
            "staked": int(pos.staked_amount),
            **settled,
        }

    def withdraw(self, pid: int, participant: str, amount: int, *, now: int) -> Json:
        who = _require_address(participant, "participant")
        amt = _require_amount(amount)
        pool = self._state.pool(pid)
        pos = self._state.position(pid, who)
        if amt > pos.staked_amount:
            raise InsufficientBalance(amt, pos.staked_amount)

        self._acc.sync(pool, now)
        settled = self._settle(pool, pos, who, now, strict=False)

        if amt > 0:
            pos.staked_amount = checked_sub(pos.staked_amount, amt)
            self._stake_assets(pool.stake_asset).transfer(who, amt)

        pos.reward_debt = scaled_share(pos.staked_amount, pool.acc_reward_per_share)
        return {
            "pid": int(pid),
            "participant": who,
            "amount": int(amt),
            "staked": int(pos.staked_amount),
            **settled,
        }

    def harvest(self, pid: int, participant: str, *, now: int) -> Json:
        who = _require_address(participant, "participant")
        pool = self._state.pool(pid)
        pos = self._state.position(pid, who)

        self._acc.sync(pool, now)
        settled = self._settle(pool, pos, who, now, strict=True)

        pos.reward_debt = scaled_share(pos.staked_amount, pool.acc_reward_per_share)
        return {
            "pid": int(pid),
            "participant": who,
            "staked": int(pos.staked_amount),
            "next_harvest_time": HarvestGuard.next_harvest_time(pos, pool.harvest_interval),
            **settled,
        }

    def emergency_exit(self, pid: int, participant: str, *, now: int) -> Json:
        """Return the full stake without syncing; pending entitlement is forfeited.

        `now` only sizes the reported forfeiture; the pool is not touched.
        """
        who = _require_address(participant, "participant")
        pool = self._state.pool(pid)
        pos = self._state.position(pid, who)

        amount = int(pos.staked_amount)
        forfeited = self._forfeit_estimate(pool, pos, pid, now)

        pos.staked_amount = 0
        pos.reward_debt = 0
        pos.last_harvest_time = 0
        pos.reward_locked_up = 0

        if amount > 0:
            self._stake_assets(pool.stake_asset).transfer(who, amount)

        return {"pid": int(pid), "participant": who, "amount": amount, "forfeited": int(forfeited)}

    # ----------------------------
    # Views
    # ----------------------------

    def pending_reward(self, pid: int, participant: str, *, now: int) -> int:
        pool = self._state.pool(pid)
        pos = self._state.peek_position(pid, participant)
        acc = self._acc.preview_acc_per_share(pool, now)
        return accrued(pool, pos, acc) + int(pos.reward_locked_up)

    def can_harvest(self, pid: int, participant: str, *, now: int) -> bool:
        pool = self._state.pool(pid)
        pos = self._state.peek_position(pid, participant)
        return HarvestGuard.can_harvest(pos, now, pool.harvest_interval)
