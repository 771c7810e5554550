# src/farmledger/ledger/fixed_point.py
from __future__ import annotations

"""Scaled-integer arithmetic for share-price and debt computations.

All values are unsigned 256-bit quantities. Products are computed at full
width before the floor division, so `a * b` may exceed 2**256 as long as the
quotient fits.
"""

from farmledger.ledger.constants import PRECISION, UINT256_MAX
from farmledger.runtime.errors import ArithmeticOverflow


def _require_uint(v: int, name: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise ArithmeticOverflow("operand_not_int", {"operand": name, "type": type(v).__name__})
    if v < 0:
        raise ArithmeticOverflow("operand_negative", {"operand": name, "value": v})
    if v > UINT256_MAX:
        raise ArithmeticOverflow("operand_exceeds_uint256", {"operand": name})
    return v


def mul_div(a: int, b: int, denominator: int) -> int:
    """Return floor(a * b / denominator), rejecting results above uint256."""
    _require_uint(a, "a")
    _require_uint(b, "b")
    _require_uint(denominator, "denominator")
    if denominator == 0:
        raise ArithmeticOverflow("division_by_zero", {"a": a, "b": b})
    out = (a * b) // denominator
    if out > UINT256_MAX:
        raise ArithmeticOverflow("result_exceeds_uint256", {"denominator": denominator})
    return out


def checked_add(a: int, b: int) -> int:
    out = _require_uint(a, "a") + _require_uint(b, "b")
    if out > UINT256_MAX:
        raise ArithmeticOverflow("sum_exceeds_uint256")
    return out


def checked_sub(a: int, b: int) -> int:
    _require_uint(a, "a")
    _require_uint(b, "b")
    if b > a:
        raise ArithmeticOverflow("subtraction_underflow", {"a": a, "b": b})
    return a - b


def scaled_share(amount: int, acc_per_share: int) -> int:
    """amount * acc_per_share / PRECISION (the reward-debt product)."""
    return mul_div(amount, acc_per_share, PRECISION)


def per_share_increment(reward: int, supply: int) -> int:
    """reward * PRECISION / supply (the accumulator increment)."""
    return mul_div(reward, PRECISION, supply)


def bps_of(amount: int, bps: int, denominator: int) -> int:
    return mul_div(amount, bps, denominator)
