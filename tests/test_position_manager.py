from __future__ import annotations

import pytest

from farmledger.ledger.constants import ENGINE_ACCOUNT_ID, PRECISION, UINT256_MAX
from farmledger.runtime.errors import (
    ArithmeticOverflow,
    HarvestTooEarly,
    InsufficientBalance,
    InvalidAmount,
    InvalidPool,
    TransferRejected,
    ZeroAddress,
)
from farmledger.testing.harness import FEE_SINK, REWARD, make_harness

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20


def _single_pool(**kw):
    h = make_harness(**kw)
    pid = h.add_pool("LP-A", 100)
    return h, pid


def test_concrete_scenario_single_participant() -> None:
    h, pid = _single_pool(emission_rate=10)
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)

    h.advance(10)
    assert h.engine.pending_reward(pid, ALICE) == 100

    r = h.engine.harvest(pid, ALICE)
    assert r["paid"] == 100
    assert h.reward_balance(ALICE) == 100
    assert h.engine.state.pools[pid].acc_reward_per_share == PRECISION

    other = h.engine.harvest(pid, BOB)
    assert other["paid"] == 0
    assert h.reward_balance(BOB) == 0


def test_deposit_then_withdraw_same_instant_round_trips() -> None:
    h, pid = _single_pool()
    h.fund("LP-A", ALICE, 100)

    h.engine.deposit(pid, ALICE, 100)
    r = h.engine.withdraw(pid, ALICE, 100)

    assert r["paid"] == 0
    assert r["staked"] == 0
    assert h.stake_balance("LP-A", ALICE) == 100
    assert h.reward_balance(ALICE) == 0


def test_rewards_are_proportional_to_stake() -> None:
    h, pid = _single_pool()
    h.fund("LP-A", ALICE, 100)
    h.fund("LP-A", BOB, 300)
    h.engine.deposit(pid, ALICE, 100)
    h.engine.deposit(pid, BOB, 300)

    h.advance(10)
    assert h.engine.pending_reward(pid, ALICE) == 25
    assert h.engine.pending_reward(pid, BOB) == 75


def test_late_joiner_only_earns_from_join_time() -> None:
    h, pid = _single_pool()
    h.fund("LP-A", ALICE, 100)
    h.fund("LP-A", BOB, 100)
    h.engine.deposit(pid, ALICE, 100)

    h.advance(10)
    h.engine.deposit(pid, BOB, 100)
    h.advance(10)

    assert h.engine.pending_reward(pid, ALICE) == 150
    assert h.engine.pending_reward(pid, BOB) == 50


def test_zero_deposit_claims_pending() -> None:
    h, pid = _single_pool()
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)
    h.advance(10)

    r = h.engine.deposit(pid, ALICE, 0)
    assert r["paid"] == 100
    assert r["staked"] == 100
    assert h.reward_balance(ALICE) == 100
    assert h.engine.pending_reward(pid, ALICE) == 0


def test_emergency_exit_survives_accrual_overflow() -> None:
    h, pid = _single_pool()
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)
    h.engine.state.pools[pid].acc_reward_per_share = UINT256_MAX - 1
    h.advance(10)

    with pytest.raises(ArithmeticOverflow):
        h.engine.harvest(pid, ALICE)

    r = h.engine.emergency_exit(pid, ALICE)
    assert r["amount"] == 100
    # Sized from the last synced accumulator once the preview overflows.
    assert r["forfeited"] == 100 * (UINT256_MAX - 1) // PRECISION
    assert h.stake_balance("LP-A", ALICE) == 100
    assert h.engine.state.peek_position(pid, ALICE).staked_amount == 0


def test_deposit_fee_goes_to_fee_address() -> None:
    h = make_harness()
    pid = h.add_pool("LP-A", 100, deposit_fee_bps=400)
    h.fund("LP-A", ALICE, 1_000)

    r = h.engine.deposit(pid, ALICE, 1_000)
    assert r["fee"] == 40
    assert r["staked"] == 960
    assert h.stake_balance("LP-A", FEE_SINK) == 40
    assert h.stake_balance("LP-A", ENGINE_ACCOUNT_ID) == 960


def test_fee_pool_without_fee_address_rejects_and_rolls_back() -> None:
    h = make_harness(fee_address=None)
    pid = h.add_pool("LP-A", 100, deposit_fee_bps=100)
    h.fund("LP-A", ALICE, 1_000)

    with pytest.raises(ZeroAddress):
        h.engine.deposit(pid, ALICE, 1_000)
    assert h.stake_balance("LP-A", ALICE) == 1_000
    assert h.engine.state.peek_position(pid, ALICE).staked_amount == 0


def test_emergency_exit_forfeits_pending() -> None:
    h, pid = _single_pool()
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)
    h.advance(10)

    r = h.engine.emergency_exit(pid, ALICE)
    assert r["amount"] == 100
    assert r["forfeited"] == 100
    assert h.stake_balance("LP-A", ALICE) == 100
    assert h.reward_balance(ALICE) == 0

    pos = h.engine.state.peek_position(pid, ALICE)
    assert pos.staked_amount == 0
    assert pos.reward_debt == 0
    assert h.engine.pending_reward(pid, ALICE) == 0


def test_withdraw_more_than_staked() -> None:
    h, pid = _single_pool()
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 50)

    with pytest.raises(InsufficientBalance) as ei:
        h.engine.withdraw(pid, ALICE, 51)
    assert isinstance(ei.value, InvalidAmount)
    assert ei.value.details == {"requested": 51, "staked": 50}


def test_invalid_inputs() -> None:
    h, pid = _single_pool()
    with pytest.raises(InvalidPool):
        h.engine.deposit(pid + 1, ALICE, 1)
    with pytest.raises(InvalidAmount):
        h.engine.deposit(pid, ALICE, -1)
    with pytest.raises(InvalidAmount):
        h.engine.deposit(pid, ALICE, True)
    with pytest.raises(ZeroAddress):
        h.engine.deposit(pid, "", 1)


def test_harvest_cooldown_and_lockup() -> None:
    h = make_harness()
    pid = h.add_pool("LP-A", 100, harvest_interval=100)
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)

    h.advance(10)
    assert h.engine.harvest(pid, ALICE)["paid"] == 100

    h.advance(10)
    with pytest.raises(HarvestTooEarly) as ei:
        h.engine.harvest(pid, ALICE)
    assert ei.value.details["next_harvest_time"] == 1_110
    # the failed harvest's sync was rolled back as well
    assert h.engine.state.pools[pid].last_sync_time == 1_010
    assert h.reward_balance(ALICE) == 100

    # Inside the cooldown a stake change still goes through; payout is deferred.
    r = h.engine.deposit(pid, ALICE, 0)
    assert r["paid"] == 0
    assert r["locked_up"] == 100
    assert not h.engine.can_harvest(pid, ALICE)
    assert h.engine.pending_reward(pid, ALICE) == 100

    h.advance(90)
    assert h.engine.can_harvest(pid, ALICE)
    r = h.engine.harvest(pid, ALICE)
    assert r["paid"] == 1_000
    assert h.reward_balance(ALICE) == 1_100


def test_emergency_exit_forfeits_locked_up_reward() -> None:
    h = make_harness()
    pid = h.add_pool("LP-A", 100, harvest_interval=100)
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)
    h.advance(10)
    h.engine.harvest(pid, ALICE)
    h.advance(10)
    h.engine.deposit(pid, ALICE, 0)

    r = h.engine.emergency_exit(pid, ALICE)
    assert r["forfeited"] == 100
    assert h.engine.state.peek_position(pid, ALICE).reward_locked_up == 0


def test_payout_is_capped_at_reward_custody() -> None:
    h, pid = _single_pool()
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)
    h.advance(10)
    h.engine.sync_pool(pid)

    # drain custody below the entitlement
    h.ledger.transfer(REWARD, sender=ENGINE_ACCOUNT_ID, to=BOB, amount=30)

    r = h.engine.harvest(pid, ALICE)
    assert r["pending"] == 100
    assert r["paid"] == 70
    assert h.reward_balance(ALICE) == 70
    assert h.engine.pending_reward(pid, ALICE) == 0


def test_fee_on_transfer_stake_asset_is_over_credited() -> None:
    # Nominal amounts are trusted: the position is credited 100 although
    # custody only received 90.
    h = make_harness(transfer_fee_bps={"LP-A": 1_000})
    pid = h.add_pool("LP-A", 100)
    h.fund("LP-A", ALICE, 100)

    r = h.engine.deposit(pid, ALICE, 100)
    assert r["staked"] == 100
    assert h.stake_balance("LP-A", ENGINE_ACCOUNT_ID) == 90

    with pytest.raises(TransferRejected):
        h.engine.withdraw(pid, ALICE, 100)
    assert h.engine.state.peek_position(pid, ALICE).staked_amount == 100
