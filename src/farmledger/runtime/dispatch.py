# src/farmledger/runtime/dispatch.py
from __future__ import annotations

"""Route transaction envelopes to engine operations.

Every tx is applied as one engine atomic unit: the signer's nonce is checked
and consumed together with the operation, so a rejected tx leaves both state
and nonce untouched. Unknown tx types fail closed.
"""

from typing import Any, Callable, Dict

from farmledger.runtime import tx_types as T
from farmledger.runtime.asset_ops import AssetOps
from farmledger.runtime.engine import FarmEngine
from farmledger.runtime.errors import InvalidTx
from farmledger.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]
Handler = Callable[[FarmEngine, TxEnvelope, int], Json]


def _field(env: TxEnvelope, key: str) -> Any:
    if key not in env.payload:
        raise InvalidTx("missing_field", {"tx_type": env.tx_type, "field": key})
    return env.payload[key]


def _int_field(env: TxEnvelope, key: str, default: Any = None) -> int:
    v = env.payload.get(key, default) if default is not None else _field(env, key)
    if isinstance(v, bool) or not isinstance(v, int):
        raise InvalidTx("field_not_int", {"tx_type": env.tx_type, "field": key, "value": v})
    return v


def _str_field(env: TxEnvelope, key: str) -> str:
    v = _field(env, key)
    if not isinstance(v, str):
        raise InvalidTx("field_not_str", {"tx_type": env.tx_type, "field": key})
    return v


def _bool_field(env: TxEnvelope, key: str) -> bool:
    v = env.payload.get(key, False)
    if not isinstance(v, bool):
        raise InvalidTx("field_not_bool", {"tx_type": env.tx_type, "field": key, "value": v})
    return v


def _deposit(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.positions.deposit(_int_field(env, "pid"), env.signer, _int_field(env, "amount"), now=now)


def _withdraw(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.positions.withdraw(_int_field(env, "pid"), env.signer, _int_field(env, "amount"), now=now)


def _harvest(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.positions.harvest(_int_field(env, "pid"), env.signer, now=now)


def _emergency_exit(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.positions.emergency_exit(_int_field(env, "pid"), env.signer, now=now)


def _pool_sync(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.sync_pool_at(_int_field(env, "pid"), now)


def _mass_sync(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return {"minted": engine.accumulator.mass_sync(now)}


def _pool_add(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.admin.add_pool(
        env.signer,
        stake_asset=_str_field(env, "stake_asset"),
        weight=_int_field(env, "weight"),
        deposit_fee_bps=_int_field(env, "deposit_fee_bps", 0),
        harvest_interval=_int_field(env, "harvest_interval", 0),
        with_update=_bool_field(env, "with_update"),
        now=now,
    )


def _pool_set(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.admin.set_pool(
        env.signer,
        _int_field(env, "pid"),
        weight=_int_field(env, "weight"),
        deposit_fee_bps=_int_field(env, "deposit_fee_bps"),
        harvest_interval=_int_field(env, "harvest_interval"),
        with_update=_bool_field(env, "with_update"),
        now=now,
    )


def _emission_rate_set(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.admin.set_emission_rate(
        env.signer, _int_field(env, "rate"), with_update=_bool_field(env, "with_update"), now=now
    )


def _emission_start_set(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.admin.set_start_time(env.signer, _int_field(env, "start_time"), now=now)


def _fee_address_set(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return engine.admin.set_fee_address(env.signer, _str_field(env, "fee_address"))


def _asset_ops(engine: FarmEngine, env: TxEnvelope) -> AssetOps:
    if engine.assets is None:
        raise InvalidTx("asset_txs_unavailable", {"tx_type": env.tx_type})
    return engine.assets


def _asset_mint(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return _asset_ops(engine, env).mint(
        env.signer, _str_field(env, "token"), _str_field(env, "to"), _int_field(env, "amount")
    )


def _asset_transfer(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    return _asset_ops(engine, env).transfer(
        env.signer, _str_field(env, "token"), _str_field(env, "to"), _int_field(env, "amount")
    )


def _asset_approve(engine: FarmEngine, env: TxEnvelope, now: int) -> Json:
    # Spender defaults to the engine custody account, the one that pulls deposits.
    spender = _str_field(env, "spender") if "spender" in env.payload else engine.engine_address
    return _asset_ops(engine, env).approve(env.signer, _str_field(env, "token"), spender, _int_field(env, "amount"))


_HANDLERS: Dict[str, Handler] = {
    T.FARM_DEPOSIT: _deposit,
    T.FARM_WITHDRAW: _withdraw,
    T.FARM_HARVEST: _harvest,
    T.FARM_EMERGENCY_EXIT: _emergency_exit,
    T.FARM_POOL_SYNC: _pool_sync,
    T.FARM_MASS_SYNC: _mass_sync,
    T.POOL_ADD: _pool_add,
    T.POOL_SET: _pool_set,
    T.EMISSION_RATE_SET: _emission_rate_set,
    T.EMISSION_START_SET: _emission_start_set,
    T.FEE_ADDRESS_SET: _fee_address_set,
    T.ASSET_MINT: _asset_mint,
    T.ASSET_TRANSFER: _asset_transfer,
    T.ASSET_APPROVE: _asset_approve,
}


def apply_tx(engine: FarmEngine, env: Any) -> Json:
    """Apply one envelope (TxEnvelope or dict) and return its receipt."""
    tx = TxEnvelope.from_json(env)
    if tx.tx_type not in T.SUPPORTED_TX_TYPES:
        raise InvalidTx("unknown_tx_type", {"tx_type": tx.tx_type})
    handler = _HANDLERS[tx.tx_type]
    if not tx.signer:
        raise InvalidTx("missing_signer", {"tx_type": tx.tx_type})

    receipt = engine.execute(
        tx.tx_type.lower(),
        lambda now: handler(engine, tx, now),
        signer=tx.signer,
        nonce=tx.nonce,
    )
    return {"applied": tx.tx_type, "signer": tx.signer, "nonce": tx.nonce, **receipt}
