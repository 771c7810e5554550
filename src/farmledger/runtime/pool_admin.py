# src/farmledger/runtime/pool_admin.py
from __future__ import annotations

"""Administrative mutations of pools and emission.

Integrity precondition: add_pool, set_pool and set_emission_rate take
`with_update`. With with_update=True every pool is synced
at `now` before the change, so elapsed intervals are paid at the old weights
and rate. Skipping the mass sync is allowed, but any pool that has not been
synced up to `now` will have the new total_weight / emission_rate applied
retroactively to its whole unaccounted interval, over- or under-paying it.
"""

import logging
from typing import Any, Callable, Dict

from farmledger.ledger.assets import StakeAsset
from farmledger.ledger.constants import MAX_DEPOSIT_FEE_BPS, MAX_HARVEST_INTERVAL, ZERO_ADDRESS
from farmledger.ledger.state import FarmState
from farmledger.ledger.types import Pool
from farmledger.runtime.access import AccessPolicy, Capability
from farmledger.runtime.accumulator import RewardAccumulator
from farmledger.runtime.errors import (
    DuplicatePool,
    ExcessiveDepositFee,
    ExcessiveHarvestInterval,
    InvalidAmount,
    ZeroAddress,
)
from farmledger.runtime.farm_logging import log_event

Json = Dict[str, Any]

log = logging.getLogger("farmledger.admin")


def _as_param(v: Any, field: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int) or v < 0:
        raise InvalidAmount("non_negative_int_required", {"field": field, "value": v})
    return v


def _require_address(v: Any, field: str) -> str:
    s = v.strip() if isinstance(v, str) else ""
    if not s or s == ZERO_ADDRESS:
        raise ZeroAddress(field)
    return s


def validate_pool_params(deposit_fee_bps: Any, harvest_interval: Any) -> tuple[int, int]:
    fee = _as_param(deposit_fee_bps, "deposit_fee_bps")
    if fee > MAX_DEPOSIT_FEE_BPS:
        raise ExcessiveDepositFee(fee, MAX_DEPOSIT_FEE_BPS)
    interval = _as_param(harvest_interval, "harvest_interval")
    if interval > MAX_HARVEST_INTERVAL:
        raise ExcessiveHarvestInterval(interval, MAX_HARVEST_INTERVAL)
    return fee, interval


class PoolAdmin:
    def __init__(
        self,
        *,
        state: FarmState,
        accumulator: RewardAccumulator,
        policy: AccessPolicy,
        stake_assets: Callable[[str], StakeAsset],
        reward_asset_id: str,
    ) -> None:
        self._state = state
        self._acc = accumulator
        self._policy = policy
        self._stake_assets = stake_assets
        self._reward_asset_id = str(reward_asset_id or "")

    @property
    def policy(self) -> AccessPolicy:
        return self._policy

    def _pre_change_sync(self, op: str, now: int, with_update: bool) -> Dict[int, int]:
        if with_update:
            return self._acc.mass_sync(now)
        stale = self._acc.stale_pools(now)
        if stale:
            log_event(log, "farm_admin_without_sync", level=logging.WARNING, op=op, stale_pools=stale, now=int(now))
        return {}

    def add_pool(
        self,
        caller: str,
        *,
        stake_asset: str,
        weight: int,
        deposit_fee_bps: int = 0,
        harvest_interval: int = 0,
        with_update: bool = False,
        now: int,
    ) -> Json:
        self._policy.require(caller, Capability.MANAGE_POOLS)
        asset_id = _require_address(stake_asset, "stake_asset")
        w = _as_param(weight, "weight")
        fee, interval = validate_pool_params(deposit_fee_bps, harvest_interval)

        if self._reward_asset_id and asset_id == self._reward_asset_id:
            # Custody of minted rewards would be counted as stake supply.
            raise DuplicatePool(asset_id, "stake_asset_is_reward_asset")
        if any(p.stake_asset == asset_id for p in self._state.pools):
            raise DuplicatePool(asset_id)
        # Resolve (or issue) the stake asset before any pool syncs.
        self._stake_assets(asset_id)

        minted = self._pre_change_sync("add_pool", now, bool(with_update))

        pool = Pool(
            stake_asset=asset_id,
            last_sync_time=self._state.emission.first_sync_time(now),
            deposit_fee_bps=fee,
            harvest_interval=interval,
        )
        self._state.pools.append(pool)
        total = self._state.emission.add_pool_weight(self._state.pools, pool, w)
        return {
            "pid": len(self._state.pools) - 1,
            "stake_asset": asset_id,
            "weight": w,
            "total_weight": total,
            "synced": minted,
        }

    def set_pool(
        self,
        caller: str,
        pid: int,
        *,
        weight: int,
        deposit_fee_bps: int,
        harvest_interval: int,
        with_update: bool = False,
        now: int,
    ) -> Json:
        self._policy.require(caller, Capability.MANAGE_POOLS)
        pool = self._state.pool(pid)
        w = _as_param(weight, "weight")
        fee, interval = validate_pool_params(deposit_fee_bps, harvest_interval)

        minted = self._pre_change_sync("set_pool", now, bool(with_update))

        prev_weight = int(pool.weight)
        total = self._state.emission.set_pool_weight(self._state.pools, pool, w)
        pool.deposit_fee_bps = fee
        pool.harvest_interval = interval
        return {
            "pid": int(pid),
            "weight": w,
            "prev_weight": prev_weight,
            "total_weight": total,
            "deposit_fee_bps": fee,
            "harvest_interval": interval,
            "synced": minted,
        }

    def set_emission_rate(self, caller: str, rate: int, *, with_update: bool = False, now: int) -> Json:
        self._policy.require(caller, Capability.SET_EMISSION)
        minted = self._pre_change_sync("set_emission_rate", now, bool(with_update))
        prev = self._state.emission.set_rate(rate)
        return {"emission_rate": int(self._state.emission.emission_rate), "prev_rate": int(prev), "synced": minted}

    def set_start_time(self, caller: str, start_time: int, *, now: int) -> Json:
        """Move the emission start; only allowed while emission has not started."""
        self._policy.require(caller, Capability.SET_EMISSION)
        st = self._state.emission.set_start_time(start_time, now=now)
        for pool in self._state.pools:
            pool.last_sync_time = st
        return {"start_time": st}

    def set_fee_address(self, caller: str, fee_address: str) -> Json:
        self._policy.require(caller, Capability.SET_FEE_ADDRESS)
        addr = _require_address(fee_address, "fee_address")
        prev = self._state.fee_address
        self._state.fee_address = addr
        return {"fee_address": addr, "prev_fee_address": prev}
