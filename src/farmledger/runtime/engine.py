# src/farmledger/runtime/engine.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from farmledger.ledger.assets import AssetHandle, RewardAsset, StakeAsset, TokenLedger
from farmledger.ledger.state import FarmState
from farmledger.runtime.access import AccessPolicy
from farmledger.runtime.accumulator import RewardAccumulator
from farmledger.runtime.asset_ops import AssetOps
from farmledger.runtime.clock import Clock, system_clock
from farmledger.runtime.errors import AssetError, FarmError, InvalidTx
from farmledger.runtime.farm_logging import log_event
from farmledger.runtime.harvest_guard import HarvestGuard
from farmledger.runtime.metrics import metrics_enabled, observe_farm, record_minted, record_op
from farmledger.runtime.pool_admin import PoolAdmin
from farmledger.runtime.position_manager import PositionManager
from farmledger.runtime.reentrancy import NonReentrantGuard

Json = Dict[str, Any]
CommitHook = Callable[[FarmState], None]
OpFn = Callable[[int], Json]

log = logging.getLogger("farmledger.engine")


class FarmEngine:
    """Single entry point for every state-changing farm operation.

    Each operation is one atomic unit: it runs under the reentrancy guard,
    against a checkpoint of FarmState and of every transactional collaborator.
    Any exception (including a rejected mint or transfer, or a failing commit
    hook) restores all of them and re-raises; nothing partially applies.
    """

    def __init__(
        self,
        *,
        reward_asset: RewardAsset,
        reward_asset_id: str,
        stake_assets: Mapping[str, StakeAsset],
        engine_address: str,
        policy: AccessPolicy,
        state: Optional[FarmState] = None,
        clock: Clock = system_clock,
        on_commit: Optional[CommitHook] = None,
        token_ledger: Optional[TokenLedger] = None,
    ) -> None:
        self.engine_address = str(engine_address)
        self.reward_asset_id = str(reward_asset_id)
        self.state = state if state is not None else FarmState()
        self.clock = clock

        self._reward_asset = reward_asset
        self._stake_assets: Dict[str, StakeAsset] = dict(stake_assets)
        self._on_commit = on_commit
        self._token_ledger = token_ledger
        self._guard = NonReentrantGuard()

        self.accumulator = RewardAccumulator(
            state=self.state,
            reward_asset=reward_asset,
            stake_assets=self.stake_asset,
            engine_address=self.engine_address,
        )
        self.positions = PositionManager(
            state=self.state,
            accumulator=self.accumulator,
            reward_asset=reward_asset,
            stake_assets=self.stake_asset,
            engine_address=self.engine_address,
        )
        self.admin = PoolAdmin(
            state=self.state,
            accumulator=self.accumulator,
            policy=policy,
            stake_assets=self._provision_stake_asset,
            reward_asset_id=self.reward_asset_id,
        )
        # Token transfers, approvals and stake-token mints; only with an attached ledger.
        self.assets: Optional[AssetOps] = None
        if token_ledger is not None:
            self.assets = AssetOps(
                ledger=token_ledger,
                reward_asset_id=self.reward_asset_id,
                engine_address=self.engine_address,
            )

    # ----------------------------
    # Collaborators
    # ----------------------------

    @property
    def policy(self) -> AccessPolicy:
        return self.admin.policy

    def stake_asset(self, asset_id: str) -> StakeAsset:
        asset = self._stake_assets.get(str(asset_id))
        if asset is not None:
            return asset
        if self._token_ledger is not None and self._token_ledger.has_token(asset_id):
            return AssetHandle(self._token_ledger, str(asset_id), holder=self.engine_address)
        raise AssetError("unknown_stake_asset", {"stake_asset": asset_id})

    def _provision_stake_asset(self, asset_id: str) -> StakeAsset:
        """Resolve a stake asset for a new pool, issuing it on the attached ledger if absent.

        Issued tokens are minted by the owner. Issuance is part of the calling
        operation and is undone with it.
        """
        aid = str(asset_id)
        ledger = self._token_ledger
        if ledger is not None and aid not in self._stake_assets and not ledger.has_token(aid):
            ledger.register(aid, minter=self.policy.owner)
            log_event(log, "farm_stake_asset_issued", stake_asset=aid, minter=self.policy.owner)
        return self.stake_asset(aid)

    def set_commit_hook(self, hook: Optional[CommitHook]) -> None:
        self._on_commit = hook

    def register_stake_asset(self, asset_id: str, asset: StakeAsset) -> None:
        self._stake_assets[str(asset_id)] = asset

    def _transactional(self) -> List[Any]:
        """Collaborators that can checkpoint/restore, one per shared backing store."""
        scopes: List[Any] = []
        seen: set[int] = set()
        for c in [self._token_ledger, self._reward_asset, *self._stake_assets.values()]:
            if c is None:
                continue
            scope = getattr(c, "transaction_scope", c)
            if id(scope) in seen:
                continue
            if callable(getattr(scope, "checkpoint", None)) and callable(getattr(scope, "restore", None)):
                seen.add(id(scope))
                scopes.append(scope)
        return scopes

    # ----------------------------
    # Atomic unit
    # ----------------------------

    @contextmanager
    def _atomic(self, op: str) -> Iterator[int]:
        with self._guard.hold(op):
            now = int(self.clock())
            snapshot = self.state.clone()
            self.accumulator.take_minted()
            checkpoints: List[Tuple[Any, Any]] = [(s, s.checkpoint()) for s in self._transactional()]
            try:
                yield now
                if self._on_commit is not None:
                    self._on_commit(self.state)
            except BaseException:
                self.state.restore(snapshot)
                for scope, cp in checkpoints:
                    scope.restore(cp)
                raise
            if metrics_enabled():
                self._record_commit(op)

    def _record_commit(self, op: str) -> None:
        record_op(op, "ok")
        record_minted(self.accumulator.take_minted())
        em = self.state.emission
        observe_farm(pools=len(self.state.pools), total_weight=em.total_weight, emission_rate=em.emission_rate)

    def _check_nonce(self, signer: str, nonce: Any) -> None:
        if isinstance(nonce, bool) or not isinstance(nonce, int):
            raise InvalidTx("nonce_not_int", {"nonce": nonce})
        last = int(self.state.nonces.get(signer, 0))
        if nonce <= last:
            raise InvalidTx("bad_nonce", {"signer": signer, "nonce": nonce, "last_nonce": last})
        self.state.nonces[signer] = nonce

    def execute(self, op: str, fn: OpFn, *, signer: Optional[str] = None, nonce: Optional[int] = None) -> Json:
        """Run fn(now) as one atomic operation and return its receipt.

        When signer/nonce are given the nonce is checked and consumed inside
        the same unit, so a failed operation does not burn it.
        """
        try:
            with self._atomic(op) as now:
                if signer is not None:
                    self._check_nonce(signer, nonce)
                receipt = fn(now)
        except FarmError as e:
            if metrics_enabled():
                record_op(op, e.code)
            log_event(log, "farm_op_failed", level=logging.WARNING, op=op, code=e.code, reason=e.reason)
            raise

        log_event(log, "farm_op_ok", op=op, now=now, **{k: v for k, v in receipt.items() if k in ("pid", "participant")})
        return receipt

    # ----------------------------
    # Participant operations
    # ----------------------------

    def deposit(self, pid: int, participant: str, amount: int) -> Json:
        return self.execute("deposit", lambda now: self.positions.deposit(pid, participant, amount, now=now))

    def withdraw(self, pid: int, participant: str, amount: int) -> Json:
        return self.execute("withdraw", lambda now: self.positions.withdraw(pid, participant, amount, now=now))

    def harvest(self, pid: int, participant: str) -> Json:
        return self.execute("harvest", lambda now: self.positions.harvest(pid, participant, now=now))

    def emergency_exit(self, pid: int, participant: str) -> Json:
        return self.execute("emergency_exit", lambda now: self.positions.emergency_exit(pid, participant, now=now))

    def sync_pool(self, pid: int) -> Json:
        return self.execute("sync_pool", lambda now: self.sync_pool_at(pid, now))

    def sync_pool_at(self, pid: int, now: int) -> Json:
        """Unguarded single-pool sync; callers must already be inside execute()."""
        pool = self.state.pool(pid)
        minted = self.accumulator.sync(pool, now)
        return {"pid": int(pid), "minted": minted, "acc_reward_per_share": int(pool.acc_reward_per_share)}

    def mass_sync(self) -> Json:
        return self.execute("mass_sync", lambda now: {"minted": self.accumulator.mass_sync(now)})

    # ----------------------------
    # Administrative operations
    # ----------------------------

    def add_pool(
        self,
        caller: str,
        stake_asset: str,
        weight: int,
        *,
        deposit_fee_bps: int = 0,
        harvest_interval: int = 0,
        with_update: bool = False,
    ) -> Json:
        return self.execute(
            "add_pool",
            lambda now: self.admin.add_pool(
                caller,
                stake_asset=stake_asset,
                weight=weight,
                deposit_fee_bps=deposit_fee_bps,
                harvest_interval=harvest_interval,
                with_update=with_update,
                now=now,
            ),
        )

    def set_pool(
        self,
        caller: str,
        pid: int,
        weight: int,
        *,
        deposit_fee_bps: int,
        harvest_interval: int,
        with_update: bool = False,
    ) -> Json:
        return self.execute(
            "set_pool",
            lambda now: self.admin.set_pool(
                caller,
                pid,
                weight=weight,
                deposit_fee_bps=deposit_fee_bps,
                harvest_interval=harvest_interval,
                with_update=with_update,
                now=now,
            ),
        )

    def set_emission_rate(self, caller: str, rate: int, *, with_update: bool = False) -> Json:
        return self.execute(
            "set_emission_rate",
            lambda now: self.admin.set_emission_rate(caller, rate, with_update=with_update, now=now),
        )

    def set_start_time(self, caller: str, start_time: int) -> Json:
        return self.execute("set_start_time", lambda now: self.admin.set_start_time(caller, start_time, now=now))

    def set_fee_address(self, caller: str, fee_address: str) -> Json:
        return self.execute("set_fee_address", lambda _now: self.admin.set_fee_address(caller, fee_address))

    # ----------------------------
    # Views
    # ----------------------------
    #
    # Every view takes the operation lock, so it never observes a half-applied
    # operation; a read issued from inside an operation raises ReentrantCall.

    def view(self, fn: Callable[[], Any]) -> Any:
        with self._guard.hold("view"):
            return fn()

    def _at(self, now: Optional[int]) -> int:
        return int(self.clock()) if now is None else int(now)

    def pool_length(self) -> int:
        return self.view(lambda: len(self.state.pools))

    def pending_reward(self, pid: int, participant: str, *, now: Optional[int] = None) -> int:
        return self.view(lambda: self.positions.pending_reward(pid, participant, now=self._at(now)))

    def can_harvest(self, pid: int, participant: str, *, now: Optional[int] = None) -> bool:
        return self.view(lambda: self.positions.can_harvest(pid, participant, now=self._at(now)))

    def _pool_info(self, pid: int) -> Json:
        pool = self.state.pool(pid)
        return {
            "pid": int(pid),
            **pool.to_json(),
            "stake_supply": self.accumulator.stake_supply(pool),
        }

    def pool_info(self, pid: int) -> Json:
        return self.view(lambda: self._pool_info(pid))

    def pools_info(self) -> List[Json]:
        return self.view(lambda: [self._pool_info(pid) for pid in range(len(self.state.pools))])

    def _position_info(self, pid: int, participant: str, now: int) -> Json:
        pool = self.state.pool(pid)
        pos = self.state.peek_position(pid, participant)
        return {
            "pid": int(pid),
            "participant": str(participant),
            **pos.to_json(),
            "pending": self.positions.pending_reward(pid, participant, now=now),
            "can_harvest": HarvestGuard.can_harvest(pos, now, pool.harvest_interval),
            "next_harvest_time": HarvestGuard.next_harvest_time(pos, pool.harvest_interval),
        }

    def position_info(self, pid: int, participant: str, *, now: Optional[int] = None) -> Json:
        return self.view(lambda: self._position_info(pid, participant, self._at(now)))

    def _status(self) -> Json:
        em = self.state.emission
        return {
            "engine_address": self.engine_address,
            "reward_asset": self.reward_asset_id,
            "pool_count": len(self.state.pools),
            "emission_rate": int(em.emission_rate),
            "start_time": int(em.start_time),
            "total_weight": int(em.total_weight),
            "fee_address": self.state.fee_address,
            "now": int(self.clock()),
        }

    def status(self) -> Json:
        return self.view(self._status)

    def snapshot(self) -> Json:
        return self.view(self.state.to_json)
