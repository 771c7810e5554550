# src/farmledger/ledger/migrations.py
from __future__ import annotations

from typing import Any, Callable, Dict, List

Json = Dict[str, Any]

# Increment this when you add a new migration step.
CURRENT_STATE_VERSION = 1

_POOL_INT_FIELDS = (
    "weight",
    "last_sync_time",
    "acc_reward_per_share",
    "deposit_fee_bps",
    "harvest_interval",
)

_POSITION_INT_FIELDS = (
    "staked_amount",
    "reward_debt",
    "last_harvest_time",
    "reward_locked_up",
)


def _as_int(v: Any, default: int = 0) -> int:
    try:
        if isinstance(v, bool):
            return default
        return int(v)
    except Exception:
        return default


def _as_str(v: Any) -> str:
    try:
        return str(v) if v is not None else ""
    except Exception:
        return ""


def _ensure_dict(root: Json, key: str) -> Json:
    v = root.get(key)
    if not isinstance(v, dict):
        v = {}
        root[key] = v
    return v


def _ensure_list(root: Json, key: str) -> List[Any]:
    v = root.get(key)
    if not isinstance(v, list):
        v = []
        root[key] = v
    return v


def _ensure_int(root: Json, key: str, default: int = 0) -> int:
    if key not in root:
        root[key] = int(default)
        return int(default)
    x = _as_int(root.get(key), default)
    root[key] = int(x)
    return int(x)


def _ensure_str(root: Json, key: str, default: str = "") -> str:
    if key not in root:
        root[key] = str(default)
        return str(default)
    s = _as_str(root.get(key))
    root[key] = s
    return s


def _migrate_v0_to_v1(st: Json) -> Json:
    """
    v0 -> v1: introduce explicit state_version and normalize the farm roots.

    v0 characteristics:
      - no 'state_version'
      - may have missing roots, string-encoded integers, or non-dict records
    """
    emission = _ensure_dict(st, "emission")
    _ensure_int(emission, "emission_rate", 0)
    _ensure_int(emission, "start_time", 0)
    _ensure_int(emission, "total_weight", 0)

    _ensure_str(st, "fee_address", "")

    pools = _ensure_list(st, "pools")
    for i, pool in enumerate(list(pools)):
        if not isinstance(pool, dict):
            # Pools are never removed; keep the index stable with a retired pool.
            pools[i] = {"stake_asset": f"retired-{i}"}
            pool = pools[i]
        _ensure_str(pool, "stake_asset", f"retired-{i}")
        for k in _POOL_INT_FIELDS:
            _ensure_int(pool, k, 0)

    positions = _ensure_dict(st, "positions")
    for pid_s, by_pool in list(positions.items()):
        pid = _as_int(pid_s, -1)
        if pid < 0 or pid >= len(pools) or not isinstance(by_pool, dict):
            del positions[pid_s]
            continue
        if str(pid) != pid_s:
            del positions[pid_s]
            positions[str(pid)] = by_pool
        for addr, pos in list(by_pool.items()):
            if not isinstance(pos, dict):
                by_pool[addr] = {}
                pos = by_pool[addr]
            for k in _POSITION_INT_FIELDS:
                _ensure_int(pos, k, 0)

    nonces = _ensure_dict(st, "nonces")
    for signer in list(nonces.keys()):
        nonces[signer] = _as_int(nonces.get(signer), 0)

    st["state_version"] = 1
    return st


_MIGRATIONS: Dict[int, Callable[[Json], Json]] = {
    0: _migrate_v0_to_v1,
}


def migrate_state_dict(raw: Any) -> Json:
    """
    Upgrade a raw persisted JSON dict to CURRENT_STATE_VERSION.

    - Best-effort: never raises for simple shape issues; it normalizes.
    - If raw isn't a dict, returns an empty vCURRENT state skeleton.
    """
    st: Json = raw if isinstance(raw, dict) else {}

    v = _as_int(st.get("state_version"), 0)
    if v > CURRENT_STATE_VERSION:
        # Future state created by a newer binary; refuse to downgrade silently.
        raise ValueError(
            f"Farm state version {v} is newer than this binary supports (max {CURRENT_STATE_VERSION})."
        )

    while v < CURRENT_STATE_VERSION:
        step = _MIGRATIONS.get(v)
        if step is None:
            raise ValueError(f"No migration path from state_version={v} to {CURRENT_STATE_VERSION}.")
        st = step(st)
        v = _as_int(st.get("state_version"), v + 1)

    # Ensure correct final version tag
    st["state_version"] = CURRENT_STATE_VERSION
    return st
