from __future__ import annotations

import threading

import pytest

from farmledger.ledger.assets import AssetHandle
from farmledger.ledger.constants import ENGINE_ACCOUNT_ID
from farmledger.runtime.errors import MintRejected, ReentrantCall
from farmledger.testing.harness import REWARD, make_harness

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20


def test_mint_rejection_aborts_the_whole_operation() -> None:
    h = make_harness(reward_supply_cap=50)
    pid = h.add_pool("LP-A", 100)
    h.fund("LP-A", ALICE, 100)
    h.fund("LP-A", BOB, 100)
    h.engine.deposit(pid, ALICE, 100)
    before = h.engine.snapshot()

    h.advance(10)
    with pytest.raises(MintRejected) as ei:
        h.engine.harvest(pid, ALICE)
    assert ei.value.code == "asset_rejected"
    assert ei.value.reason == "supply_cap_exceeded"

    # A deposit by someone else syncs first and fails the same way.
    with pytest.raises(MintRejected):
        h.engine.deposit(pid, BOB, 100)

    assert h.engine.snapshot() == before
    assert h.ledger.total_supply(REWARD) == 0
    assert h.stake_balance("LP-A", BOB) == 100


def test_commit_hook_failure_rolls_back() -> None:
    armed = {"fail": False}
    commits = []

    def hook(state) -> None:
        if armed["fail"]:
            raise RuntimeError("disk full")
        commits.append(state.to_json())

    h = make_harness(on_commit=hook)
    pid = h.add_pool("LP-A", 100)
    h.fund("LP-A", ALICE, 100)
    n = len(commits)

    armed["fail"] = True
    with pytest.raises(RuntimeError):
        h.engine.deposit(pid, ALICE, 100)
    assert len(commits) == n
    assert h.stake_balance("LP-A", ALICE) == 100
    assert h.engine.state.peek_position(pid, ALICE).staked_amount == 0

    armed["fail"] = False
    h.engine.deposit(pid, ALICE, 100)
    assert len(commits) == n + 1


class _ReentrantStake:
    """Stake asset whose transfer hook calls back into the engine."""

    def __init__(self, inner: AssetHandle, engine, pid: int) -> None:
        self._inner = inner
        self._engine = engine
        self._pid = pid

    @property
    def transaction_scope(self):
        return self._inner.transaction_scope

    def transfer_from(self, participant: str, to: str, amount: int) -> None:
        self._inner.transfer_from(participant, to, amount)
        self._engine.harvest(self._pid, participant)

    def transfer(self, to: str, amount: int) -> None:
        self._inner.transfer(to, amount)

    def balance_of(self, address: str) -> int:
        return self._inner.balance_of(address)


def test_reentrant_call_is_rejected_and_outer_op_aborts() -> None:
    h = make_harness()
    pid = h.add_pool("LP-A", 100)
    h.fund("LP-A", ALICE, 100)

    plain = AssetHandle(h.ledger, "LP-A", holder=ENGINE_ACCOUNT_ID)
    h.engine.register_stake_asset("LP-A", _ReentrantStake(plain, h.engine, pid))

    with pytest.raises(ReentrantCall) as ei:
        h.engine.deposit(pid, ALICE, 100)
    assert ei.value.code == "reentrancy"
    assert ei.value.details == {"op": "harvest", "active_op": "deposit"}
    assert h.stake_balance("LP-A", ALICE) == 100

    # guard released on the error path
    h.engine.register_stake_asset("LP-A", plain)
    assert h.engine.deposit(pid, ALICE, 100)["staked"] == 100


def test_concurrent_callers_are_serialized() -> None:
    h = make_harness()
    pid = h.add_pool("LP-A", 100)
    accounts = ["0x" + f"{i:02x}" * 20 for i in range(1, 9)]
    for a in accounts:
        h.fund("LP-A", a, 10)

    errors = []

    def worker(account: str) -> None:
        try:
            for _ in range(5):
                h.engine.deposit(pid, account, 2)
        except Exception as e:  # pragma: no cover
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(a,)) for a in accounts]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert h.stake_balance("LP-A", ENGINE_ACCOUNT_ID) == 10 * len(accounts)
    for a in accounts:
        assert h.engine.state.peek_position(pid, a).staked_amount == 10


class _ReadingStake(_ReentrantStake):
    """Stake asset whose transfer hook reads engine views mid-operation."""

    def transfer_from(self, participant: str, to: str, amount: int) -> None:
        self._inner.transfer_from(participant, to, amount)
        self._engine.pending_reward(self._pid, participant)


def test_views_are_guarded_against_reads_mid_operation() -> None:
    h = make_harness()
    pid = h.add_pool("LP-A", 100)
    h.fund("LP-A", ALICE, 100)

    plain = AssetHandle(h.ledger, "LP-A", holder=ENGINE_ACCOUNT_ID)
    h.engine.register_stake_asset("LP-A", _ReadingStake(plain, h.engine, pid))

    with pytest.raises(ReentrantCall) as ei:
        h.engine.deposit(pid, ALICE, 100)
    assert ei.value.details == {"op": "view", "active_op": "deposit"}
    assert h.stake_balance("LP-A", ALICE) == 100
    assert h.engine.state.peek_position(pid, ALICE).staked_amount == 0

    # outside an operation the same reads succeed
    assert h.engine.pending_reward(pid, ALICE) == 0
    assert h.engine.position_info(pid, ALICE)["staked_amount"] == 0
    assert h.engine.pools_info()[0]["stake_asset"] == "LP-A"
