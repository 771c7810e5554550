# src/farmledger/runtime/access.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Set

from farmledger.runtime.errors import Unauthorized


class Capability(str, Enum):
    MANAGE_POOLS = "manage_pools"
    SET_EMISSION = "set_emission"
    SET_FEE_ADDRESS = "set_fee_address"


ALL_CAPABILITIES: Set[Capability] = set(Capability)


@dataclass
class AccessPolicy:
    """Explicit capability check for administrative operations.

    The owner holds every capability. Other accounts hold only what the
    operator config grants them.
    """

    owner: str
    grants: Dict[str, Set[Capability]] = field(default_factory=dict)

    def grant(self, account: str, capabilities: Iterable[Capability | str]) -> None:
        caps = self.grants.setdefault(str(account), set())
        for c in capabilities:
            caps.add(Capability(c))

    def has(self, caller: str, capability: Capability | str) -> bool:
        cap = Capability(capability)
        c = str(caller or "").strip()
        if not c:
            return False
        if c == self.owner:
            return True
        return cap in self.grants.get(c, set())

    def require(self, caller: str, capability: Capability | str) -> None:
        if not self.has(caller, capability):
            raise Unauthorized(str(caller), Capability(capability).value)
