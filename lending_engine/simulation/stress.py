"""Health-factor stress testing of pool accounts under simulated prices.

Positions are read once from the pool at current prices; each simulated
path then rescales the prices of the shocked assets and the health factor
is evaluated at every time step. The pool itself is never mutated.

    hf(path, t) = sum(collateral_i * factor_i * threshold_i)
                  / sum(debt_j * factor_j)

A path liquidates an account when its minimum health factor falls below 1.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from ..adapters.oracles import StaticPriceOracle
from ..common.protocol_constants import PERCENTAGE_FACTOR
from ..models.interfaces import PriceOracle
from ..services.lending_pool import LendingPool
from .price_paths import SimulationConfig, simulate_gbm_paths


logger = logging.getLogger(__name__)

RESULT_COLUMNS = ["user", "path", "min_health_factor", "liquidated"]
SUMMARY_COLUMNS = [
    "user",
    "current_health_factor",
    "liquidation_probability",
    "worst_health_factor",
    "median_min_health_factor",
]


@dataclass(frozen=True)
class AccountExposure:
    """Base-currency exposure of one account per asset at current prices."""

    user: str
    assets: List[str]
    collateral: np.ndarray
    thresholds: np.ndarray
    debt: np.ndarray

    @property
    def current_health_factor(self) -> float:
        total_debt = float(self.debt.sum())
        if total_debt <= 0:
            return float("inf")
        return float((self.collateral * self.thresholds).sum()) / total_debt


def collect_exposures(pool: LendingPool, users: Optional[Iterable[str]] = None) -> List[AccountExposure]:
    """Read each account's collateral and debt in base currency."""
    assets = pool.get_reserves_list()
    exposures: List[AccountExposure] = []
    for user in users if users is not None else pool.get_users():
        configuration = pool.get_user_configuration(user)
        if configuration.is_empty():
            continue
        collateral = np.zeros(len(assets))
        thresholds = np.zeros(len(assets))
        debt = np.zeros(len(assets))
        for position, asset in enumerate(assets):
            using_as_collateral = configuration.is_using_as_collateral(asset)
            borrowing = configuration.is_borrowing(asset)
            if not using_as_collateral and not borrowing:
                continue
            reserve_config = pool.get_reserve(asset).configuration
            unit = 10 ** reserve_config.decimals
            price = pool.oracle.get_asset_price(asset)
            data = pool.get_user_reserve_data(asset, user)
            if using_as_collateral:
                collateral[position] = price * data.current_deposit_balance // unit
                thresholds[position] = reserve_config.liquidation_threshold_bps / PERCENTAGE_FACTOR
            if borrowing:
                debt[position] = price * (data.current_stable_debt + data.current_variable_debt) // unit
        exposures.append(
            AccountExposure(user=user, assets=assets, collateral=collateral, thresholds=thresholds, debt=debt)
        )
    return exposures


def health_factor_paths(exposure: AccountExposure, factors: Mapping[str, np.ndarray]) -> np.ndarray:
    """Health factor at every (path, step) for one account.

    Parameters
    ----------
    exposure:
        Account exposure at current prices.
    factors:
        Price factor paths keyed by asset, each ``(n_paths, n_steps + 1)``.
        Assets without an entry keep their current price.

    Returns
    -------
    np.ndarray
        Shape ``(n_paths, n_steps + 1)``; ``inf`` where the account has no debt.
    """
    shape = next(iter(factors.values())).shape
    weighted_collateral = np.zeros(shape)
    debt = np.zeros(shape)
    for position, asset in enumerate(exposure.assets):
        factor = factors.get(asset)
        scale = factor if factor is not None else np.ones(shape)
        weighted_collateral += exposure.collateral[position] * exposure.thresholds[position] * scale
        debt += exposure.debt[position] * scale
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(debt > 0, weighted_collateral / np.where(debt > 0, debt, 1.0), np.inf)


def run_stress_test(
    pool: LendingPool,
    shocked_assets: Iterable[str],
    config: Optional[SimulationConfig] = None,
    seed: Optional[int] = None,
    users: Optional[Iterable[str]] = None,
    correlated: bool = True,
) -> pd.DataFrame:
    """Simulate price paths for ``shocked_assets`` and record per-path minimum HF.

    When ``correlated`` is true every shocked asset follows the same path,
    which models a basket of assets pegged to one another.

    Returns
    -------
    pd.DataFrame
        One row per (user, path) with columns ``RESULT_COLUMNS``.
    """
    config = config or SimulationConfig()
    shocked_assets = [str(asset).upper() for asset in shocked_assets]
    if not shocked_assets:
        raise ValueError("At least one asset must be shocked")

    factors: Dict[str, np.ndarray] = {}
    shared = simulate_gbm_paths(1.0, config, seed)
    for offset, asset in enumerate(shocked_assets):
        if correlated or offset == 0:
            factors[asset] = shared
        else:
            factors[asset] = simulate_gbm_paths(1.0, config, None if seed is None else seed + offset)

    frames = []
    for exposure in collect_exposures(pool, users):
        min_hf = health_factor_paths(exposure, factors).min(axis=1)
        frames.append(
            pd.DataFrame(
                {
                    "user": exposure.user,
                    "path": np.arange(len(min_hf)),
                    "min_health_factor": min_hf,
                    "liquidated": min_hf < 1.0,
                }
            )
        )
    if not frames:
        return pd.DataFrame(columns=RESULT_COLUMNS)

    results = pd.concat(frames, ignore_index=True)[RESULT_COLUMNS]
    logger.info(
        "Stress test completed accounts=%d paths=%d shocked=%s liquidated_share=%.4f",
        len(frames),
        config.n_simulations,
        ",".join(shocked_assets),
        float(results["liquidated"].mean()),
    )
    return results


def summarize_stress_results(results: pd.DataFrame, pool: Optional[LendingPool] = None) -> pd.DataFrame:
    """Aggregate per-path results into one row per account."""
    if results.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)
    summary = (
        results.groupby("user")
        .agg(
            liquidation_probability=("liquidated", "mean"),
            worst_health_factor=("min_health_factor", "min"),
            median_min_health_factor=("min_health_factor", "median"),
        )
        .reset_index()
    )
    current = {}
    if pool is not None:
        for exposure in collect_exposures(pool, summary["user"].tolist()):
            current[exposure.user] = exposure.current_health_factor
    summary["current_health_factor"] = summary["user"].map(current).astype(float)
    return summary[SUMMARY_COLUMNS].sort_values("liquidation_probability", ascending=False).reset_index(drop=True)


def shocked_oracle(base: PriceOracle, assets: Iterable[str], factor: float) -> StaticPriceOracle:
    """Oracle pricing ``assets`` at ``factor`` times their ``base`` price."""
    shocked = set(assets)
    prices = {}
    for asset in shocked:
        prices[asset] = int(base.get_asset_price(asset) * factor)
    return _OverlayPriceOracle(base, prices)


class _OverlayPriceOracle(StaticPriceOracle):
    """Static overrides on top of another oracle."""

    def __init__(self, base: PriceOracle, prices: Dict[str, int]) -> None:
        super().__init__(prices)
        self._base = base

    def get_asset_price(self, asset: str) -> int:
        if asset in self._prices:
            return super().get_asset_price(asset)
        return self._base.get_asset_price(asset)
