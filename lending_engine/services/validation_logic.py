"""Pre-condition checks for pool entry points.

Each function raises the matching :mod:`lending_engine.models.exceptions`
error and returns ``None`` when the action may proceed.
"""

import logging
from typing import Sequence

from ..common.protocol_constants import HEALTH_FACTOR_LIQUIDATION_THRESHOLD, MAX_UINT256, RAY
from ..common.wad_ray_math import percent_div, percent_mul, ray_div, wad_to_ray
from ..models.account import AccountData, UserConfiguration
from ..models.enums import InterestRateMode
from ..models.exceptions import (
    AmountBiggerThanMaxStableLoanError,
    BorrowingNotEnabledError,
    CollateralBalanceZeroError,
    CollateralCannotBeLiquidatedError,
    CollateralCannotCoverNewBorrowError,
    CollateralSameAsBorrowingCurrencyError,
    DepositAlreadyInUseError,
    HealthFactorNotBelowThresholdError,
    HealthFactorTooLowError,
    InvalidAmountError,
    InvalidInterestRateModeError,
    NoDebtOfSelectedTypeError,
    NoExplicitAmountToRepayOnBehalfError,
    NotEnoughAvailableUserBalanceError,
    RebalanceConditionsNotMetError,
    ReserveFrozenError,
    ReserveInactiveError,
    StableBorrowingNotEnabledError,
    UnderlyingBalanceZeroError,
    UserDidNotBorrowSpecifiedAssetError,
)
from .reserve_logic import ReserveData


logger = logging.getLogger(__name__)


def _require_active(reserve: ReserveData) -> None:
    if not reserve.configuration.active:
        raise ReserveInactiveError("Reserve {0} is not active".format(reserve.asset))


def _require_not_frozen(reserve: ReserveData) -> None:
    if reserve.configuration.frozen:
        raise ReserveFrozenError("Reserve {0} is frozen".format(reserve.asset))


def _require_amount(amount: int) -> None:
    if amount <= 0:
        raise InvalidAmountError("Amount must be greater than 0")


def validate_deposit(reserve: ReserveData, amount: int) -> None:
    _require_amount(amount)
    _require_active(reserve)
    _require_not_frozen(reserve)


def validate_withdraw(reserve: ReserveData, amount: int, user_balance: int, balance_decrease_allowed: bool) -> None:
    _require_amount(amount)
    if amount > user_balance:
        raise NotEnoughAvailableUserBalanceError(
            "Withdraw of {0} exceeds balance {1}".format(amount, user_balance)
        )
    _require_active(reserve)
    if not balance_decrease_allowed:
        raise HealthFactorTooLowError("Withdraw would drop the health factor below 1")


def validate_borrow(
    reserve: ReserveData,
    amount: int,
    amount_in_base: int,
    rate_mode: InterestRateMode,
    account: AccountData,
    user_config: UserConfiguration,
    user_deposit_balance: int,
    available_liquidity: int,
    max_stable_loan_percent_bps: int,
) -> None:
    """Check reserve status, account solvency and stable-rate restrictions.

    Raises:
        ValidationError: For reserve status, amount or rate-mode problems.
        HealthFactorTooLowError: If the account cannot support the new debt.
    """
    _require_active(reserve)
    _require_not_frozen(reserve)
    _require_amount(amount)

    configuration = reserve.configuration
    if not configuration.borrowing_enabled:
        raise BorrowingNotEnabledError("Borrowing is disabled on {0}".format(reserve.asset))
    if rate_mode not in (InterestRateMode.STABLE, InterestRateMode.VARIABLE):
        raise InvalidInterestRateModeError("Invalid rate mode {0}".format(rate_mode))

    if account.total_collateral_base == 0:
        raise CollateralBalanceZeroError("Account has no collateral")
    if account.health_factor <= HEALTH_FACTOR_LIQUIDATION_THRESHOLD:
        raise HealthFactorTooLowError("Health factor {0} is below 1".format(account.health_factor))
    if account.ltv_bps == 0:
        raise CollateralCannotCoverNewBorrowError("Collateral has zero loan-to-value")

    collateral_needed = percent_div(account.total_debt_base + amount_in_base, account.ltv_bps)
    if collateral_needed > account.total_collateral_base:
        raise CollateralCannotCoverNewBorrowError(
            "Borrow needs collateral {0} but account has {1}".format(
                collateral_needed, account.total_collateral_base
            )
        )

    if rate_mode == InterestRateMode.STABLE:
        if not configuration.stable_borrow_rate_enabled:
            raise StableBorrowingNotEnabledError("Stable borrowing is disabled on {0}".format(reserve.asset))
        if (
            user_config.is_using_as_collateral(reserve.asset)
            and configuration.ltv_bps != 0
            and amount <= user_deposit_balance
        ):
            raise CollateralSameAsBorrowingCurrencyError(
                "Stable borrow of {0} backed by its own deposit".format(reserve.asset)
            )
        max_loan_size_stable = percent_mul(available_liquidity, max_stable_loan_percent_bps)
        if amount > max_loan_size_stable:
            raise AmountBiggerThanMaxStableLoanError(
                "Stable borrow {0} exceeds max {1}".format(amount, max_loan_size_stable)
            )


def validate_repay(
    reserve: ReserveData,
    amount: int,
    rate_mode: InterestRateMode,
    caller: str,
    on_behalf_of: str,
    stable_debt: int,
    variable_debt: int,
) -> None:
    _require_active(reserve)
    _require_amount(amount)
    if rate_mode == InterestRateMode.STABLE:
        if stable_debt == 0:
            raise NoDebtOfSelectedTypeError("No stable debt to repay")
    elif rate_mode == InterestRateMode.VARIABLE:
        if variable_debt == 0:
            raise NoDebtOfSelectedTypeError("No variable debt to repay")
    else:
        raise InvalidInterestRateModeError("Invalid rate mode {0}".format(rate_mode))
    if amount == MAX_UINT256 and caller != on_behalf_of:
        raise NoExplicitAmountToRepayOnBehalfError("Repaying for another account needs an explicit amount")


def validate_swap_rate_mode(
    reserve: ReserveData,
    user_config: UserConfiguration,
    stable_debt: int,
    variable_debt: int,
    current_rate_mode: InterestRateMode,
    user_deposit_balance: int,
) -> None:
    _require_active(reserve)
    _require_not_frozen(reserve)
    if current_rate_mode == InterestRateMode.STABLE:
        if stable_debt == 0:
            raise NoDebtOfSelectedTypeError("No stable debt to swap")
    elif current_rate_mode == InterestRateMode.VARIABLE:
        if variable_debt == 0:
            raise NoDebtOfSelectedTypeError("No variable debt to swap")
        if not reserve.configuration.stable_borrow_rate_enabled:
            raise StableBorrowingNotEnabledError("Stable borrowing is disabled on {0}".format(reserve.asset))
        if (
            user_config.is_using_as_collateral(reserve.asset)
            and reserve.configuration.ltv_bps != 0
            and stable_debt + variable_debt <= user_deposit_balance
        ):
            raise CollateralSameAsBorrowingCurrencyError(
                "Stable debt of {0} backed by its own deposit".format(reserve.asset)
            )
    else:
        raise InvalidInterestRateModeError("Invalid rate mode {0}".format(current_rate_mode))


def validate_rebalance_stable_borrow_rate(
    reserve: ReserveData,
    user_stable_debt: int,
    user_stable_rate: int,
    total_debt: int,
    available_liquidity: int,
    usage_ratio_threshold: int,
    liquidity_rate_threshold_bps: int,
) -> None:
    """Allow a rebalance only under high usage and a low liquidity rate.

    The user's coupon must also be below the reserve's current stable rate,
    otherwise rebalancing would not move it up.
    """
    _require_active(reserve)
    if user_stable_debt == 0:
        raise NoDebtOfSelectedTypeError("User has no stable debt to rebalance")

    usage_ratio = 0
    if total_debt != 0:
        total_debt_ray = wad_to_ray(total_debt)
        usage_ratio = ray_div(total_debt_ray, wad_to_ray(available_liquidity) + total_debt_ray)
    max_variable_borrow_rate = reserve.strategy.get_max_variable_borrow_rate()
    liquidity_rate_ceiling = percent_mul(max_variable_borrow_rate, liquidity_rate_threshold_bps)

    if (
        usage_ratio < usage_ratio_threshold
        or reserve.current_liquidity_rate > liquidity_rate_ceiling
        or user_stable_rate >= reserve.current_stable_borrow_rate
    ):
        logger.info(
            "Rebalance rejected asset=%s usage_ratio=%s liquidity_rate=%s user_rate=%s stable_rate=%s",
            reserve.asset,
            usage_ratio,
            reserve.current_liquidity_rate,
            user_stable_rate,
            reserve.current_stable_borrow_rate,
        )
        raise RebalanceConditionsNotMetError(
            "usage={0:.4f} liquidity_rate={1} ceiling={2}".format(
                usage_ratio / RAY, reserve.current_liquidity_rate, liquidity_rate_ceiling
            )
        )


def validate_set_use_reserve_as_collateral(
    reserve: ReserveData,
    use_as_collateral: bool,
    underlying_balance: int,
    balance_decrease_allowed: bool,
) -> None:
    _require_active(reserve)
    if underlying_balance == 0:
        raise UnderlyingBalanceZeroError("No deposit of {0}".format(reserve.asset))
    if not use_as_collateral and not balance_decrease_allowed:
        raise DepositAlreadyInUseError("Deposit of {0} backs outstanding debt".format(reserve.asset))


def validate_liquidation_call(
    collateral_reserve: ReserveData,
    debt_reserve: ReserveData,
    user_config: UserConfiguration,
    health_factor: int,
    user_stable_debt: int,
    user_variable_debt: int,
) -> None:
    """Reject liquidations of healthy accounts or of non-collateral assets.

    Raises:
        ReserveInactiveError: If either reserve is inactive.
        HealthFactorNotBelowThresholdError: If the account is healthy.
        CollateralCannotBeLiquidatedError: If the collateral is not enabled for the user.
        UserDidNotBorrowSpecifiedAssetError: If the user has no debt in the debt asset.
    """
    _require_active(collateral_reserve)
    _require_active(debt_reserve)
    if health_factor >= HEALTH_FACTOR_LIQUIDATION_THRESHOLD:
        raise HealthFactorNotBelowThresholdError("Health factor {0} is not below 1".format(health_factor))
    if (
        collateral_reserve.configuration.liquidation_threshold_bps == 0
        or not user_config.is_using_as_collateral(collateral_reserve.asset)
    ):
        raise CollateralCannotBeLiquidatedError(
            "{0} is not collateral of the user".format(collateral_reserve.asset)
        )
    if user_stable_debt == 0 and user_variable_debt == 0:
        raise UserDidNotBorrowSpecifiedAssetError("User has no {0} debt".format(debt_reserve.asset))


def validate_flash_loan(
    reserves: Sequence[ReserveData], amounts: Sequence[int], modes: Sequence[int]
) -> None:
    if not reserves or len(reserves) != len(amounts) or len(reserves) != len(modes):
        raise InvalidAmountError("Inconsistent flash loan parameters")
    for reserve, amount in zip(reserves, amounts):
        _require_active(reserve)
        _require_amount(amount)


def validate_transfer(health_factor: int) -> None:
    """Checked after the balances moved; the caller rolls back on failure."""
    if health_factor < HEALTH_FACTOR_LIQUIDATION_THRESHOLD:
        raise HealthFactorTooLowError("Transfer would drop the health factor below 1")
