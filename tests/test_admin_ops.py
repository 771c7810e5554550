from __future__ import annotations

import pytest

from farmledger.ledger.constants import MAX_HARVEST_INTERVAL, ZERO_ADDRESS
from farmledger.runtime.access import Capability
from farmledger.runtime.errors import (
    AssetError,
    DuplicatePool,
    ExcessiveDepositFee,
    ExcessiveHarvestInterval,
    InvalidStartTime,
    Unauthorized,
    ZeroAddress,
)
from farmledger.testing.harness import OWNER, REWARD, make_harness

ALICE = "0x" + "a1" * 20
CAROL = "0x" + "c0" * 20


def test_only_capable_callers_manage_pools() -> None:
    h = make_harness(stake_tokens=("LP-A", "LP-B"))

    with pytest.raises(Unauthorized) as ei:
        h.engine.add_pool(CAROL, "LP-A", 100)
    assert ei.value.code == "forbidden"
    assert h.engine.pool_length() == 0

    h.engine.policy.grant(CAROL, [Capability.MANAGE_POOLS])
    assert h.engine.add_pool(CAROL, "LP-A", 100)["pid"] == 0

    with pytest.raises(Unauthorized):
        h.engine.set_emission_rate(CAROL, 1)
    with pytest.raises(Unauthorized):
        h.engine.set_fee_address(CAROL, CAROL)


def test_add_pool_validation() -> None:
    h = make_harness(stake_tokens=("LP-A",))
    h.add_pool("LP-A", 100)

    with pytest.raises(DuplicatePool):
        h.add_pool("LP-A", 50)
    with pytest.raises(DuplicatePool) as ei:
        h.add_pool(REWARD, 50)
    assert ei.value.reason == "stake_asset_is_reward_asset"
    with pytest.raises(ZeroAddress):
        h.add_pool(ZERO_ADDRESS, 50)
    with pytest.raises(AssetError) as ei2:
        h.add_pool("LP-UNKNOWN", 50)
    assert ei2.value.reason == "unknown_stake_asset"
    with pytest.raises(ExcessiveDepositFee):
        h.add_pool("LP-UNKNOWN", 50, deposit_fee_bps=1_101)
    with pytest.raises(ExcessiveHarvestInterval):
        h.add_pool("LP-UNKNOWN", 50, harvest_interval=MAX_HARVEST_INTERVAL + 1)

    assert h.engine.pool_length() == 1
    assert h.engine.state.emission.total_weight == 100


def test_add_pool_with_update_settles_old_weights_first() -> None:
    h = make_harness(stake_tokens=("LP-A", "LP-B"))
    a = h.add_pool("LP-A", 100)
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(a, ALICE, 100)

    h.advance(10)
    r = h.engine.add_pool(OWNER, "LP-B", 100, with_update=True)
    assert r["synced"] == {a: 100}

    h.advance(10)
    assert h.engine.pending_reward(a, ALICE) == 150


def test_add_pool_without_update_applies_new_weight_retroactively() -> None:
    h = make_harness(stake_tokens=("LP-A", "LP-B"))
    a = h.add_pool("LP-A", 100)
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(a, ALICE, 100)

    h.advance(10)
    h.add_pool("LP-B", 100)
    h.advance(10)
    # 20s at the diluted weight instead of 10s full + 10s half
    assert h.engine.pending_reward(a, ALICE) == 100


def test_set_pool_recomputes_total_weight() -> None:
    h = make_harness(stake_tokens=("LP-A", "LP-B"))
    a = h.add_pool("LP-A", 100)
    h.add_pool("LP-B", 300)

    r = h.engine.set_pool(OWNER, a, 50, deposit_fee_bps=200, harvest_interval=60, with_update=True)
    assert r["prev_weight"] == 100
    assert r["total_weight"] == 350
    pool = h.engine.state.pools[a]
    assert (pool.weight, pool.deposit_fee_bps, pool.harvest_interval) == (50, 200, 60)
    assert h.engine.state.emission.total_weight == sum(p.weight for p in h.engine.state.pools)


def test_set_emission_rate_with_update() -> None:
    h = make_harness()
    pid = h.add_pool("LP-A", 100)
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)

    h.advance(10)
    r = h.engine.set_emission_rate(OWNER, 20, with_update=True)
    assert r["prev_rate"] == 10
    assert r["synced"] == {pid: 100}

    h.advance(10)
    assert h.engine.pending_reward(pid, ALICE) == 300


def test_start_time_gates_accrual_and_can_move_before_start() -> None:
    h = make_harness(start_time=2_000, now=1_000)
    pid = h.add_pool("LP-A", 100)
    assert h.engine.state.pools[pid].last_sync_time == 2_000

    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)
    h.advance(500)
    assert h.engine.pending_reward(pid, ALICE) == 0

    h.engine.set_start_time(OWNER, 1_600)
    assert h.engine.state.pools[pid].last_sync_time == 1_600

    h.advance(200)
    assert h.engine.pending_reward(pid, ALICE) == 1_000

    with pytest.raises(InvalidStartTime):
        h.engine.set_start_time(OWNER, 1_800)


def test_set_fee_address_rejects_zero() -> None:
    h = make_harness()
    with pytest.raises(ZeroAddress):
        h.engine.set_fee_address(OWNER, ZERO_ADDRESS)
    r = h.engine.set_fee_address(OWNER, CAROL)
    assert h.engine.state.fee_address == CAROL
    assert r["fee_address"] == CAROL
