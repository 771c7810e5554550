# src/farmledger/ledger/constants.py
from __future__ import annotations

"""Accrual constants.

- Share-price precision: 1e12
- Deposit fee expressed in basis points, capped at 11%
- Harvest cooldown capped at 14 days
"""

# Scaled fixed-point precision for acc_reward_per_share and reward_debt
PRECISION: int = 10**12

# Arithmetic bound (all amounts must fit an unsigned 256-bit word)
UINT256_MAX: int = 2**256 - 1

# Basis points
BPS_DENOMINATOR: int = 10_000
MAX_DEPOSIT_FEE_BPS: int = 1_100  # 11%

# Harvest cooldown ceiling (seconds)
MAX_HARVEST_INTERVAL: int = 14 * 24 * 60 * 60

# Emission ceiling: reward base units per second
MAX_EMISSION_RATE: int = 10**30

# Null address; any required address equal to this (or empty) is rejected
ZERO_ADDRESS: str = "0x" + "0" * 40

# Canonical custody account of the engine in collaborator ledgers
ENGINE_ACCOUNT_ID: str = "FARM_ENGINE"
