# src/farmledger/runtime/farm_config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from farmledger.ledger.constants import (
    ENGINE_ACCOUNT_ID,
    MAX_DEPOSIT_FEE_BPS,
    MAX_EMISSION_RATE,
    MAX_HARVEST_INTERVAL,
    ZERO_ADDRESS,
)
from farmledger.runtime.access import Capability

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_opt_int(v: Any) -> Optional[int]:
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    return int(v)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class PoolConfig:
    stake_asset: str
    weight: int
    deposit_fee_bps: int = 0
    harvest_interval: int = 0
    # Only used by the in-process token ledger: fee burned on every transfer.
    transfer_fee_bps: int = 0

    @staticmethod
    def from_json(j: Any) -> "PoolConfig":
        if not isinstance(j, dict):
            raise ValueError("pool config entries must be mappings")
        return PoolConfig(
            stake_asset=_as_str(j.get("stake_asset"), ""),
            weight=_as_int(j.get("weight"), 0),
            deposit_fee_bps=_as_int(j.get("deposit_fee_bps"), 0),
            harvest_interval=_as_int(j.get("harvest_interval"), 0),
            transfer_fee_bps=_as_int(j.get("transfer_fee_bps"), 0),
        )


@dataclass(frozen=True)
class FarmConfig:
    mode: str  # "dev" | "testnet" | "prod"

    db_path: str

    engine_address: str
    owner: str
    fee_address: str

    reward_asset: str
    reward_supply_cap: Optional[int]
    emission_rate: int
    start_time: int

    pools: Tuple[PoolConfig, ...] = field(default_factory=tuple)
    admins: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    allow_unsigned_txs: bool = False

    log_level: str = "INFO"


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _require_address(name: str, v: Any) -> None:
    if not isinstance(v, str) or not v.strip() or v.strip() == ZERO_ADDRESS:
        raise ValueError(f"{name} must be a non-empty, non-zero address")


def validate_farm_config(cfg: FarmConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    for name in ("engine_address", "owner", "reward_asset"):
        _require_address(name, getattr(cfg, name))
    # fee_address may be left unset; deposits into fee-charging pools then fail.
    if cfg.fee_address and cfg.fee_address != ZERO_ADDRESS:
        _require_address("fee_address", cfg.fee_address)

    if not (0 <= int(cfg.emission_rate) <= MAX_EMISSION_RATE):
        raise ValueError(f"emission_rate must be 0..{MAX_EMISSION_RATE}; got: {cfg.emission_rate}")
    if int(cfg.start_time) < 0:
        raise ValueError(f"start_time must be >= 0; got: {cfg.start_time}")
    if cfg.reward_supply_cap is not None and int(cfg.reward_supply_cap) < 0:
        raise ValueError("reward_supply_cap must be >= 0 when set")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {_ALLOWED_LOG_LEVELS}; got: {cfg.log_level!r}")

    if mode == "prod" and cfg.allow_unsigned_txs:
        raise ValueError("allow_unsigned_txs is not permitted in prod mode")

    seen: set[str] = set()
    for i, p in enumerate(cfg.pools):
        _require_address(f"pools[{i}].stake_asset", p.stake_asset)
        if p.stake_asset == cfg.reward_asset:
            raise ValueError(f"pools[{i}].stake_asset must differ from reward_asset")
        if p.stake_asset in seen:
            raise ValueError(f"pools[{i}].stake_asset is duplicated: {p.stake_asset!r}")
        seen.add(p.stake_asset)
        if int(p.weight) < 0:
            raise ValueError(f"pools[{i}].weight must be >= 0")
        if not (0 <= int(p.deposit_fee_bps) <= MAX_DEPOSIT_FEE_BPS):
            raise ValueError(f"pools[{i}].deposit_fee_bps must be 0..{MAX_DEPOSIT_FEE_BPS}")
        if not (0 <= int(p.harvest_interval) <= MAX_HARVEST_INTERVAL):
            raise ValueError(f"pools[{i}].harvest_interval must be 0..{MAX_HARVEST_INTERVAL}")
        if not (0 <= int(p.transfer_fee_bps) < 10_000):
            raise ValueError(f"pools[{i}].transfer_fee_bps must be 0..9999")

    valid_caps = {c.value for c in Capability}
    for account, caps in cfg.admins.items():
        _require_address("admins key", account)
        for c in caps:
            if c not in valid_caps:
                raise ValueError(f"unknown capability {c!r} for admin {account!r}")


def default_farm_config() -> FarmConfig:
    return FarmConfig(
        # Production-safe defaults: no permissive posture without an explicit config.
        mode="prod",
        db_path="./data/farm.db",
        engine_address=ENGINE_ACCOUNT_ID,
        owner="FARM_OWNER",
        fee_address="",
        reward_asset="REWARD",
        reward_supply_cap=None,
        emission_rate=0,
        start_time=0,
        pools=(),
        admins={},
        api_host="0.0.0.0",
        api_port=8000,
        allow_unsigned_txs=False,
        log_level="INFO",
    )


def _parse_admins(raw: Any) -> Dict[str, Tuple[str, ...]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("admins must be a mapping of account -> [capability, ...]")
    out: Dict[str, Tuple[str, ...]] = {}
    for account, caps in raw.items():
        if isinstance(caps, str):
            caps = [caps]
        if not isinstance(caps, list):
            raise ValueError(f"admins[{account!r}] must be a list of capabilities")
        out[str(account)] = tuple(str(c).strip().lower() for c in caps)
    return out


def farm_config_from_dict(raw: Json) -> FarmConfig:
    if not isinstance(raw, dict):
        raise ValueError("farm config must be a mapping")

    d = default_farm_config()
    pools_raw = raw.get("pools") or []
    if not isinstance(pools_raw, list):
        raise ValueError("pools must be a list")

    cfg = FarmConfig(
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        engine_address=_as_str(raw.get("engine_address"), d.engine_address),
        owner=_as_str(raw.get("owner"), d.owner),
        fee_address=_as_str(raw.get("fee_address"), d.fee_address),
        reward_asset=_as_str(raw.get("reward_asset"), d.reward_asset),
        reward_supply_cap=_as_opt_int(raw.get("reward_supply_cap")),
        emission_rate=_as_int(raw.get("emission_rate"), d.emission_rate),
        start_time=_as_int(raw.get("start_time"), d.start_time),
        pools=tuple(PoolConfig.from_json(p) for p in pools_raw),
        admins=_parse_admins(raw.get("admins")),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        allow_unsigned_txs=_as_bool(raw.get("allow_unsigned_txs"), d.allow_unsigned_txs),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
    )

    validate_farm_config(cfg)
    return cfg


def read_farm_config_file(path: str) -> FarmConfig:
    """Read YAML (or JSON, which YAML accepts) config."""
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("farm config must be a mapping")
    return farm_config_from_dict(raw)


def load_farm_config(*, config_path: Optional[str] = None) -> FarmConfig:
    p = config_path or os.environ.get("FARM_CONFIG_PATH")
    if p:
        return read_farm_config_file(p)

    cfg = default_farm_config()
    validate_farm_config(cfg)
    return cfg


def admin_grants(cfg: FarmConfig) -> List[Tuple[str, List[Capability]]]:
    return [(account, [Capability(c) for c in caps]) for account, caps in sorted(cfg.admins.items())]
