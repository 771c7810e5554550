# src/farmledger/runtime/harvest_guard.py
from __future__ import annotations

from farmledger.ledger.types import Position
from farmledger.runtime.errors import HarvestTooEarly


class HarvestGuard:
    """Minimum interval between successful payouts on one position.

    last_harvest_time == 0 means "never harvested" and never triggers the
    cooldown, so the first payout always passes.
    """

    @staticmethod
    def can_harvest(position: Position, now: int, interval: int) -> bool:
        if int(interval) <= 0:
            return True
        last = int(position.last_harvest_time)
        if last == 0:
            return True
        return int(now) - last >= int(interval)

    @staticmethod
    def next_harvest_time(position: Position, interval: int) -> int:
        last = int(position.last_harvest_time)
        if int(interval) <= 0 or last == 0:
            return 0
        return last + int(interval)

    @classmethod
    def check_and_record(cls, position: Position, now: int, interval: int) -> None:
        if not cls.can_harvest(position, now, interval):
            raise HarvestTooEarly(now=now, last_harvest_time=position.last_harvest_time, interval=interval)
        position.last_harvest_time = int(now)
