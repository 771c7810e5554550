# src/farmledger/runtime/accumulator.py
from __future__ import annotations

"""Pool synchronization.

sync() brings a pool's accumulator up to `now`:

  reward = elapsed * emission_rate * weight / total_weight   (truncating)
  acc_reward_per_share += reward * PRECISION / stake_supply  (truncating)

The reward is minted into engine custody before the accumulator moves. When
the pool has no stake or no weight, the interval is skipped: last_sync_time
advances and nothing is minted. That reward is forfeited, not deferred.
"""

import logging
from typing import Callable, Dict, List

from farmledger.ledger.assets import RewardAsset, StakeAsset
from farmledger.ledger.fixed_point import checked_add, per_share_increment
from farmledger.ledger.state import FarmState
from farmledger.ledger.types import Pool
from farmledger.runtime.farm_logging import log_event

StakeAssetResolver = Callable[[str], StakeAsset]

log = logging.getLogger("farmledger.accumulator")


class RewardAccumulator:
    def __init__(
        self,
        *,
        state: FarmState,
        reward_asset: RewardAsset,
        stake_assets: StakeAssetResolver,
        engine_address: str,
    ) -> None:
        self._state = state
        self._reward_asset = reward_asset
        self._stake_assets = stake_assets
        self._engine_address = str(engine_address)
        self._minted_since_take = 0

    def take_minted(self) -> int:
        """Reward minted since the previous call; the engine reads it once per committed op."""
        out, self._minted_since_take = self._minted_since_take, 0
        return out

    def stake_supply(self, pool: Pool) -> int:
        return int(self._stake_assets(pool.stake_asset).balance_of(self._engine_address))

    def _accrual(self, pool: Pool, now: int) -> tuple[int, int]:
        """Return (reward, stake_supply) for the interval since last sync."""
        elapsed = int(now) - int(pool.last_sync_time)
        if elapsed <= 0:
            return 0, 0
        supply = self.stake_supply(pool)
        if supply == 0 or pool.weight == 0:
            return 0, supply
        return self._state.emission.reward_for(elapsed, pool.weight), supply

    def sync(self, pool: Pool, now: int) -> int:
        """Bring `pool` up to `now`; returns the amount minted."""
        if int(now) <= int(pool.last_sync_time):
            return 0

        reward, supply = self._accrual(pool, now)
        if supply == 0 or pool.weight == 0:
            pool.last_sync_time = int(now)
            return 0

        if reward > 0:
            # A rejected mint (e.g. supply cap) raises and aborts the caller.
            self._reward_asset.mint(self._engine_address, reward)
            pool.acc_reward_per_share = checked_add(
                pool.acc_reward_per_share, per_share_increment(reward, supply)
            )
            self._minted_since_take += int(reward)
            log_event(
                log,
                "farm_pool_synced",
                stake_asset=pool.stake_asset,
                minted=int(reward),
                supply=int(supply),
                acc_reward_per_share=str(pool.acc_reward_per_share),
                now=int(now),
            )
        pool.last_sync_time = int(now)
        return reward

    def mass_sync(self, now: int) -> Dict[int, int]:
        """Sync every pool in index order; returns pid -> minted for pools that minted."""
        minted: Dict[int, int] = {}
        for pid, pool in enumerate(self._state.pools):
            r = self.sync(pool, now)
            if r:
                minted[pid] = r
        return minted

    def preview_acc_per_share(self, pool: Pool, now: int) -> int:
        """The accumulator value sync(pool, now) would produce, without side effects."""
        reward, supply = self._accrual(pool, now)
        if reward <= 0 or supply == 0:
            return int(pool.acc_reward_per_share)
        return checked_add(pool.acc_reward_per_share, per_share_increment(reward, supply))

    def stale_pools(self, now: int) -> List[int]:
        return [pid for pid, p in enumerate(self._state.pools) if int(p.last_sync_time) < int(now)]
