"""Cross-reserve account aggregation and health factor math."""

import logging
from typing import Mapping

from ..common.protocol_constants import HEALTH_FACTOR_LIQUIDATION_THRESHOLD, MAX_UINT256
from ..common.wad_ray_math import percent_mul, wad_div
from ..models.account import AccountData, UserConfiguration
from ..models.interfaces import PriceOracle
from .reserve_logic import ReserveData, get_normalized_debt, get_normalized_income


logger = logging.getLogger(__name__)


def calculate_health_factor(total_collateral: int, total_debt: int, liquidation_threshold_bps: int) -> int:
    """Risk-adjusted collateral over debt as a wad; ``MAX_UINT256`` without debt."""
    if total_debt == 0:
        return MAX_UINT256
    return wad_div(percent_mul(total_collateral, liquidation_threshold_bps), total_debt)


def calculate_available_borrows(total_collateral: int, total_debt: int, ltv_bps: int) -> int:
    """Additional debt (base currency) the account can open at its average LTV."""
    available = percent_mul(total_collateral, ltv_bps)
    if available < total_debt:
        return 0
    return available - total_debt


def _sorted_reserves(reserves: Mapping[str, ReserveData]):
    return sorted(reserves.values(), key=lambda reserve: reserve.id)


def user_total_debt(reserve: ReserveData, user: str, now: int) -> int:
    """Stable plus variable debt of ``user`` in underlying units."""
    return reserve.stable_debt_token.balance_of(user, now) + reserve.variable_debt_token.balance_of(
        user, get_normalized_debt(reserve, now)
    )


def calculate_user_account_data(
    user: str,
    reserves: Mapping[str, ReserveData],
    user_config: UserConfiguration,
    oracle: PriceOracle,
    now: int,
) -> AccountData:
    """Aggregate collateral, debt and risk parameters across reserves.

    Only reserves the user borrows from or uses as collateral are priced, so
    a missing price for an unrelated asset never blocks the user.

    Args:
        user: Account to evaluate.
        reserves: Listed reserves keyed by asset.
        user_config: Collateral and borrowing flags of the user.
        oracle: Price source in base currency.
        now: Timestamp used to project indices and stable debt.

    Returns:
        AccountData: Totals in base currency, weighted LTV and threshold, health factor.

    Raises:
        OraclePriceUnavailableError: If a needed price is missing or stale.
    """
    total_collateral = 0
    total_debt = 0
    weighted_ltv = 0
    weighted_threshold = 0

    if user_config.is_empty():
        return AccountData(0, 0, 0, 0, 0, MAX_UINT256)

    for reserve in _sorted_reserves(reserves):
        asset = reserve.asset
        using_as_collateral = user_config.is_using_as_collateral(asset)
        borrowing = user_config.is_borrowing(asset)
        if not using_as_collateral and not borrowing:
            continue

        configuration = reserve.configuration
        unit = 10 ** configuration.decimals
        price = oracle.get_asset_price(asset)

        if configuration.liquidation_threshold_bps != 0 and using_as_collateral:
            balance = reserve.deposit_token.balance_of(user, get_normalized_income(reserve, now))
            collateral_in_base = price * balance // unit
            total_collateral += collateral_in_base
            weighted_ltv += collateral_in_base * configuration.ltv_bps
            weighted_threshold += collateral_in_base * configuration.liquidation_threshold_bps

        if borrowing:
            total_debt += price * user_total_debt(reserve, user, now) // unit

    average_ltv = weighted_ltv // total_collateral if total_collateral else 0
    average_threshold = weighted_threshold // total_collateral if total_collateral else 0

    return AccountData(
        total_collateral_base=total_collateral,
        total_debt_base=total_debt,
        available_borrows_base=calculate_available_borrows(total_collateral, total_debt, average_ltv),
        current_liquidation_threshold_bps=average_threshold,
        ltv_bps=average_ltv,
        health_factor=calculate_health_factor(total_collateral, total_debt, average_threshold),
    )


def balance_decrease_allowed(
    asset: str,
    user: str,
    amount: int,
    reserves: Mapping[str, ReserveData],
    user_config: UserConfiguration,
    oracle: PriceOracle,
    now: int,
) -> bool:
    """Whether removing ``amount`` of ``asset`` collateral keeps the account healthy."""
    if not user_config.is_borrowing_any() or not user_config.is_using_as_collateral(asset):
        return True

    reserve = reserves[asset]
    reserve_threshold = reserve.configuration.liquidation_threshold_bps
    if reserve_threshold == 0:
        return True

    account = calculate_user_account_data(user, reserves, user_config, oracle, now)
    if account.total_debt_base == 0:
        return True

    amount_to_decrease = oracle.get_asset_price(asset) * amount // 10 ** reserve.configuration.decimals
    collateral_after = account.total_collateral_base - amount_to_decrease
    if collateral_after <= 0:
        return False

    threshold_after = (
        account.total_collateral_base * account.current_liquidation_threshold_bps
        - amount_to_decrease * reserve_threshold
    ) // collateral_after
    health_factor_after = calculate_health_factor(collateral_after, account.total_debt_base, max(0, threshold_after))
    return health_factor_after >= HEALTH_FACTOR_LIQUIDATION_THRESHOLD
