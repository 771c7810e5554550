# src/farmledger/runtime/engine_boot.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from farmledger.ledger.assets import AssetHandle, TokenLedger
from farmledger.ledger.constants import ZERO_ADDRESS
from farmledger.ledger.state import FarmState
from farmledger.runtime.access import AccessPolicy
from farmledger.runtime.clock import Clock, system_clock
from farmledger.runtime.engine import FarmEngine
from farmledger.runtime.farm_config import FarmConfig, admin_grants, load_farm_config
from farmledger.runtime.farm_logging import log_event
from farmledger.runtime.sqlite_db import SqliteDB, SqliteFarmStore

Json = Dict[str, Any]

log = logging.getLogger("farmledger.boot")


@dataclass
class FarmRuntime:
    cfg: FarmConfig
    engine: FarmEngine
    assets: TokenLedger
    store: Optional[SqliteFarmStore]

    def persisted(self) -> Json:
        return {"farm": self.engine.state.to_json(), "assets": self.assets.to_json()}


def _ensure_tokens(cfg: FarmConfig, ledger: TokenLedger) -> None:
    if not ledger.has_token(cfg.reward_asset):
        ledger.register(cfg.reward_asset, minter=cfg.engine_address, supply_cap=cfg.reward_supply_cap)
    for p in cfg.pools:
        if not ledger.has_token(p.stake_asset):
            # Stake tokens in the in-process ledger are issued by the owner.
            ledger.register(p.stake_asset, minter=cfg.owner, transfer_fee_bps=p.transfer_fee_bps)


def build_runtime(
    cfg: Optional[FarmConfig] = None,
    *,
    clock: Clock = system_clock,
    persist: bool = True,
) -> FarmRuntime:
    """Wire config, persisted snapshot, token ledger and engine together.

    With persist=True the snapshot in cfg.db_path is restored (or created) and
    every committed engine operation is written back through the commit hook.
    """
    cfg = cfg or load_farm_config()

    store: Optional[SqliteFarmStore] = None
    snapshot: Optional[Json] = None
    if persist:
        store = SqliteFarmStore(db=SqliteDB(path=cfg.db_path))
        if store.exists():
            snapshot = store.read()

    if snapshot is not None:
        assets = TokenLedger.from_json(snapshot.get("assets"))
        state = FarmState.from_json(snapshot.get("farm"))
    else:
        assets = TokenLedger()
        state = FarmState()
        state.emission.set_rate(cfg.emission_rate)
        state.emission.start_time = int(cfg.start_time)
        state.fee_address = cfg.fee_address or ZERO_ADDRESS
    _ensure_tokens(cfg, assets)

    policy = AccessPolicy(owner=cfg.owner)
    for account, caps in admin_grants(cfg):
        policy.grant(account, caps)

    stake_assets = {
        tid: AssetHandle(assets, tid, holder=cfg.engine_address)
        for tid in sorted({p.stake_asset for p in cfg.pools} | {p.stake_asset for p in state.pools})
        if assets.has_token(tid)
    }

    engine = FarmEngine(
        reward_asset=AssetHandle(assets, cfg.reward_asset, holder=cfg.engine_address),
        reward_asset_id=cfg.reward_asset,
        stake_assets=stake_assets,
        engine_address=cfg.engine_address,
        policy=policy,
        state=state,
        clock=clock,
        token_ledger=assets,
    )
    rt = FarmRuntime(cfg=cfg, engine=engine, assets=assets, store=store)

    if store is not None:
        engine.set_commit_hook(lambda _state: store.write(rt.persisted()))

    if snapshot is None:
        for p in cfg.pools:
            engine.add_pool(
                cfg.owner,
                p.stake_asset,
                p.weight,
                deposit_fee_bps=p.deposit_fee_bps,
                harvest_interval=p.harvest_interval,
            )
        if store is not None and not cfg.pools:
            store.write(rt.persisted())

    log_event(
        log,
        "farm_runtime_ready",
        mode=cfg.mode,
        restored=snapshot is not None,
        pools=len(engine.state.pools),
        db_path=cfg.db_path if persist else "",
    )
    return rt
