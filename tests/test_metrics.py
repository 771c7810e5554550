from __future__ import annotations

import pytest

from farmledger.runtime import metrics
from farmledger.runtime.errors import MintRejected
from farmledger.testing.harness import make_harness

ALICE = "0x" + "a1" * 20


@pytest.fixture()
def enabled(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FARM_METRICS_ENABLED", "1")
    metrics.reset()
    yield
    metrics.reset()


def test_minted_total_counts_committed_ops_only(enabled) -> None:
    h = make_harness(reward_supply_cap=150)
    pid = h.add_pool("LP-A", 100)
    h.fund("LP-A", ALICE, 100)
    h.engine.deposit(pid, ALICE, 100)

    h.advance(10)
    h.engine.harvest(pid, ALICE)
    h.advance(10)
    with pytest.raises(MintRejected):
        h.engine.sync_pool(pid)

    snap = metrics.snapshot()
    assert snap["reward_minted_total"] == 100
    assert snap["ops"]["harvest:ok"] == 1
    assert snap["ops"]["sync_pool:asset_rejected"] == 1
    assert snap["farm"] == {"pools": 1, "total_weight": 100, "emission_rate": 10}


def test_prometheus_text(enabled) -> None:
    metrics.record_op("deposit", "ok")
    metrics.record_op("deposit", "ok")
    metrics.record_op("withdraw", "invalid_amount")
    metrics.observe_farm(pools=2, total_weight=300, emission_rate=7)

    lines = metrics.format_prometheus().splitlines()
    assert 'farm_ops_total{op="deposit",outcome="ok"} 2' in lines
    assert 'farm_ops_total{op="withdraw",outcome="invalid_amount"} 1' in lines
    assert "# TYPE farm_ops_total counter" in lines
    assert "farm_reward_minted_total 0" in lines
    assert "farm_pools 2" in lines
    assert "farm_emission_rate 7" in lines


def test_nothing_recorded_when_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FARM_METRICS_ENABLED", raising=False)
    metrics.reset()
    h = make_harness()
    h.add_pool("LP-A", 100)
    assert metrics.snapshot()["ops"] == {}
    assert "farm_pools" not in metrics.format_prometheus()
