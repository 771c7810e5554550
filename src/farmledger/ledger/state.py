from __future__ import annotations

from dataclasses import dataclass, field
import copy
from typing import Any, Dict, List

from farmledger.ledger.constants import ZERO_ADDRESS
from farmledger.ledger.migrations import CURRENT_STATE_VERSION, migrate_state_dict
from farmledger.ledger.types import Pool, Position
from farmledger.runtime.emission import EmissionController
from farmledger.runtime.errors import InvalidPool


Json = Dict[str, Any]


@dataclass
class FarmState:
    """
    Mutable engine state: ordered pools, (pid, participant) -> Position,
    emission controller, fee destination and per-signer tx nonces.
    """

    pools: List[Pool] = field(default_factory=list)
    positions: Dict[int, Dict[str, Position]] = field(default_factory=dict)
    emission: EmissionController = field(default_factory=EmissionController)
    fee_address: str = ZERO_ADDRESS
    nonces: Dict[str, int] = field(default_factory=dict)

    def pool(self, pid: Any) -> Pool:
        if isinstance(pid, bool) or not isinstance(pid, int) or pid < 0 or pid >= len(self.pools):
            raise InvalidPool(pid)
        return self.pools[pid]

    def position(self, pid: int, participant: str) -> Position:
        """Return the position record, creating an empty one on first touch."""
        self.pool(pid)
        by_pool = self.positions.setdefault(pid, {})
        pos = by_pool.get(participant)
        if pos is None:
            pos = Position()
            by_pool[participant] = pos
        return pos

    def peek_position(self, pid: int, participant: str) -> Position:
        """Read-only lookup: unknown participants get a detached empty Position."""
        self.pool(pid)
        pos = self.positions.get(pid, {}).get(participant)
        return copy.copy(pos) if pos is not None else Position()

    def to_json(self) -> Json:
        return {
            "state_version": CURRENT_STATE_VERSION,
            "emission": self.emission.to_json(),
            "fee_address": self.fee_address,
            "pools": [p.to_json() for p in self.pools],
            "positions": {
                str(pid): {addr: pos.to_json() for addr, pos in sorted(by_pool.items())}
                for pid, by_pool in sorted(self.positions.items())
            },
            "nonces": dict(sorted(self.nonces.items())),
        }

    @classmethod
    def from_json(cls, raw: Any) -> "FarmState":
        st = migrate_state_dict(copy.deepcopy(raw) if isinstance(raw, dict) else raw)
        pools = [Pool.from_json(p) for p in st.get("pools", [])]
        positions: Dict[int, Dict[str, Position]] = {}
        for pid_s, by_pool in dict(st.get("positions") or {}).items():
            pid = int(pid_s)
            if pid < 0 or pid >= len(pools):
                raise ValueError(f"position references unknown pool {pid}")
            positions[pid] = {str(a): Position.from_json(p) for a, p in by_pool.items()}
        emission = EmissionController.from_json(st.get("emission"))
        # total_weight is derived; never trust the persisted value
        emission.recompute_total(pools)
        return cls(
            pools=pools,
            positions=positions,
            emission=emission,
            fee_address=str(st.get("fee_address") or ZERO_ADDRESS),
            nonces={str(k): int(v) for k, v in dict(st.get("nonces") or {}).items()},
        )

    def clone(self) -> "FarmState":
        return copy.deepcopy(self)

    def restore(self, snapshot: "FarmState") -> None:
        """Replace contents in place so collaborators holding this object stay bound."""
        self.pools = snapshot.pools
        self.positions = snapshot.positions
        self.emission = snapshot.emission
        self.fee_address = snapshot.fee_address
        self.nonces = snapshot.nonces
