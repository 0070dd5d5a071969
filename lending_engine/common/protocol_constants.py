"""Canonical protocol constants shared by every accounting component.

Fixed-point conventions:
    * WAD: 18 decimals, used for token amounts and the health factor.
    * RAY: 27 decimals, used for rates and indices.
    * Percentages are basis points with two decimals (10000 == 100.00%).
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Fixed-point scaling factors
# ---------------------------------------------------------------------------
WAD: int = 10**18
HALF_WAD: int = WAD // 2
RAY: int = 10**27
HALF_RAY: int = RAY // 2
WAD_RAY_RATIO: int = 10**9

PERCENTAGE_FACTOR: int = 10_000
HALF_PERCENT: int = PERCENTAGE_FACTOR // 2

MAX_UINT256: int = 2**256 - 1

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------
SECONDS_PER_YEAR: int = 365 * 24 * 60 * 60  # 31_536_000

# ---------------------------------------------------------------------------
# Risk parameters
# ---------------------------------------------------------------------------
HEALTH_FACTOR_LIQUIDATION_THRESHOLD: int = WAD

# Defaults of the reference deployment; overridable through `config.yml`.
DEFAULT_LIQUIDATION_CLOSE_FACTOR_BPS: int = 5_000
DEFAULT_MAX_STABLE_LOAN_PERCENT_BPS: int = 2_500
DEFAULT_FLASH_LOAN_PREMIUM_TOTAL_BPS: int = 9
DEFAULT_FLASH_LOAN_PREMIUM_TO_PROTOCOL_BPS: int = 3_000
DEFAULT_REBALANCE_UP_USAGE_RATIO_THRESHOLD: int = 95 * RAY // 100
DEFAULT_REBALANCE_UP_LIQUIDITY_RATE_THRESHOLD_BPS: int = 4_000
DEFAULT_OPTIMAL_UTILIZATION_RATE: int = 8 * RAY // 10

# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
DEFAULT_TREASURY: str = "treasury"
