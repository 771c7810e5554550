# src/farmledger/runtime/metrics.py
from __future__ import annotations

"""Farm operation metrics.

Operation outcomes are counted per (op, outcome), where outcome is "ok" or the
FarmError code that aborted the operation. Farm gauges mirror the last
committed state. Everything lives in process memory and is exposed as
Prometheus text by /v1/metrics when FARM_METRICS_ENABLED is set.
"""

import os
import threading
import time
from typing import Dict, Tuple

_lock = threading.Lock()
_ops: Dict[Tuple[str, str], int] = {}
_farm: Dict[str, int] = {}
_minted_total = 0
_started = time.monotonic()

# name -> help text, in exposition order
_GAUGES = {
    "pools": "Number of pools (pids are never reused).",
    "total_weight": "Sum of all pool weights.",
    "emission_rate": "Reward base units emitted per second across all pools.",
}


def metrics_enabled() -> bool:
    v = (os.environ.get("FARM_METRICS_ENABLED") or "").strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def record_op(op: str, outcome: str) -> None:
    key = (str(op), str(outcome or "error"))
    with _lock:
        _ops[key] = _ops.get(key, 0) + 1


def record_minted(amount: int) -> None:
    global _minted_total
    if amount <= 0:
        return
    with _lock:
        _minted_total += int(amount)


def observe_farm(*, pools: int, total_weight: int, emission_rate: int) -> None:
    with _lock:
        _farm["pools"] = int(pools)
        _farm["total_weight"] = int(total_weight)
        _farm["emission_rate"] = int(emission_rate)


def reset() -> None:
    global _minted_total
    with _lock:
        _ops.clear()
        _farm.clear()
        _minted_total = 0


def snapshot() -> dict:
    with _lock:
        return {
            "uptime_s": int(time.monotonic() - _started),
            "ops": {f"{op}:{outcome}": n for (op, outcome), n in sorted(_ops.items())},
            "reward_minted_total": _minted_total,
            "farm": dict(_farm),
        }


def format_prometheus() -> str:
    """Prometheus text exposition (version 0.0.4)."""
    with _lock:
        ops = sorted(_ops.items())
        farm = dict(_farm)
        minted = _minted_total

    lines = [
        "# HELP farm_uptime_seconds Seconds since the process loaded the engine.",
        "# TYPE farm_uptime_seconds gauge",
        f"farm_uptime_seconds {int(time.monotonic() - _started)}",
        "# HELP farm_ops_total Engine operations by outcome (ok or abort code).",
        "# TYPE farm_ops_total counter",
    ]
    lines.extend(f'farm_ops_total{{op="{op}",outcome="{outcome}"}} {n}' for (op, outcome), n in ops)
    lines += [
        "# HELP farm_reward_minted_total Reward base units minted into engine custody.",
        "# TYPE farm_reward_minted_total counter",
        f"farm_reward_minted_total {minted}",
    ]
    for name, help_text in _GAUGES.items():
        if name not in farm:
            continue
        lines += [f"# HELP farm_{name} {help_text}", f"# TYPE farm_{name} gauge", f"farm_{name} {farm[name]}"]
    return "\n".join(lines) + "\n"
