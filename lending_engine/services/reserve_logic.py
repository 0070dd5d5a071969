"""Reserve state record and its accrual and rate-update protocol.

Every balance-changing pool operation runs :func:`update_state` before it
reads debt or liquidity totals and :func:`update_interest_rates` after it
has mutated them.
"""

from dataclasses import dataclass
import logging

from ..common.math_utils import calculate_compounded_interest, calculate_linear_interest
from ..common.protocol_constants import RAY
from ..common.wad_ray_math import percent_mul, ray_div, ray_mul, wad_to_ray
from ..models.base import Snapshotable
from ..models.exceptions import InsufficientLiquidityError, MathOverflowError
from ..models.reserve_config import ReserveConfigModel
from .debt_tokens import StableDebtToken, VariableDebtToken
from .deposit_tokens import DepositToken
from .rate_strategy import InterestRates, InterestRateStrategy, utilization_rate


logger = logging.getLogger(__name__)


@dataclass
class ReserveData(Snapshotable):
    """Mutable accounting state of one listed asset."""

    asset: str
    id: int
    configuration: ReserveConfigModel
    deposit_token: DepositToken
    stable_debt_token: StableDebtToken
    variable_debt_token: VariableDebtToken
    strategy: InterestRateStrategy
    liquidity_index: int = RAY
    variable_borrow_index: int = RAY
    current_liquidity_rate: int = 0
    current_variable_borrow_rate: int = 0
    current_stable_borrow_rate: int = 0
    last_update_timestamp: int = 0

    _snapshot_exclude = ("deposit_token", "stable_debt_token", "variable_debt_token", "strategy")


@dataclass(frozen=True)
class ReserveTotals:
    """Liquidity and debt totals of a reserve at one timestamp."""

    available_liquidity: int
    total_stable_debt: int
    total_variable_debt: int
    average_stable_borrow_rate: int

    @property
    def total_debt(self) -> int:
        return self.total_stable_debt + self.total_variable_debt

    @property
    def total_liquidity(self) -> int:
        return self.available_liquidity + self.total_debt

    @property
    def utilization_rate(self) -> int:
        return utilization_rate(self.available_liquidity, self.total_debt)


def get_normalized_income(reserve: ReserveData, now: int) -> int:
    """Liquidity index projected to ``now`` without mutating the reserve."""
    if now == reserve.last_update_timestamp:
        return reserve.liquidity_index
    cumulated = calculate_linear_interest(reserve.current_liquidity_rate, reserve.last_update_timestamp, now)
    return ray_mul(cumulated, reserve.liquidity_index)


def get_normalized_debt(reserve: ReserveData, now: int) -> int:
    """Variable borrow index projected to ``now`` without mutating the reserve."""
    if now == reserve.last_update_timestamp:
        return reserve.variable_borrow_index
    cumulated = calculate_compounded_interest(
        reserve.current_variable_borrow_rate, reserve.last_update_timestamp, now
    )
    return ray_mul(cumulated, reserve.variable_borrow_index)


def get_reserve_totals(reserve: ReserveData, now: int) -> ReserveTotals:
    total_stable_debt, average_stable_rate = reserve.stable_debt_token.get_total_supply_and_avg_rate(now)
    total_variable_debt = reserve.variable_debt_token.total_supply(get_normalized_debt(reserve, now))
    return ReserveTotals(
        available_liquidity=reserve.deposit_token.available_liquidity(),
        total_stable_debt=total_stable_debt,
        total_variable_debt=total_variable_debt,
        average_stable_borrow_rate=average_stable_rate,
    )


def _update_indexes(reserve: ReserveData, scaled_variable_debt: int, now: int) -> None:
    last_update = reserve.last_update_timestamp
    if reserve.current_liquidity_rate > 0:
        cumulated_liquidity_interest = calculate_linear_interest(
            reserve.current_liquidity_rate, last_update, now
        )
        reserve.liquidity_index = ray_mul(cumulated_liquidity_interest, reserve.liquidity_index)

        # variable debt only accrues when it exists
        if scaled_variable_debt != 0:
            cumulated_variable_interest = calculate_compounded_interest(
                reserve.current_variable_borrow_rate, last_update, now
            )
            reserve.variable_borrow_index = ray_mul(cumulated_variable_interest, reserve.variable_borrow_index)


def _mint_to_treasury(
    reserve: ReserveData,
    scaled_variable_debt: int,
    previous_variable_borrow_index: int,
    previous_timestamp: int,
    now: int,
) -> int:
    reserve_factor = reserve.configuration.reserve_factor_bps
    if reserve_factor == 0:
        return 0

    principal_stable_debt, current_stable_debt, avg_stable_rate, stable_supply_updated = (
        reserve.stable_debt_token.get_supply_data(now)
    )

    previous_variable_debt = ray_mul(scaled_variable_debt, previous_variable_borrow_index)
    current_variable_debt = ray_mul(scaled_variable_debt, reserve.variable_borrow_index)

    cumulated_stable_interest = calculate_compounded_interest(
        avg_stable_rate, stable_supply_updated, max(previous_timestamp, stable_supply_updated)
    )
    previous_stable_debt = ray_mul(principal_stable_debt, cumulated_stable_interest)

    total_debt_accrued = (
        current_variable_debt + current_stable_debt - previous_variable_debt - previous_stable_debt
    )
    if total_debt_accrued <= 0:
        return 0

    amount_to_mint = percent_mul(total_debt_accrued, reserve_factor)
    if amount_to_mint != 0:
        reserve.deposit_token.mint_to_treasury(amount_to_mint, reserve.liquidity_index)
    return amount_to_mint


def update_state(reserve: ReserveData, now: int) -> int:
    """Accrue interest up to ``now`` and mint the treasury's share.

    A second call at the same timestamp is a no-op.

    Returns:
        int: Amount minted to the treasury in underlying units.

    Raises:
        MathOverflowError: If ``now`` precedes the last update.
    """
    if now == reserve.last_update_timestamp:
        return 0
    if now < reserve.last_update_timestamp:
        raise MathOverflowError(
            "Reserve {0} updated at {1} cannot move back to {2}".format(
                reserve.asset, reserve.last_update_timestamp, now
            )
        )

    scaled_variable_debt = reserve.variable_debt_token.scaled_total_supply()
    previous_variable_borrow_index = reserve.variable_borrow_index
    previous_liquidity_index = reserve.liquidity_index
    previous_timestamp = reserve.last_update_timestamp

    _update_indexes(reserve, scaled_variable_debt, now)
    minted = _mint_to_treasury(reserve, scaled_variable_debt, previous_variable_borrow_index, previous_timestamp, now)
    reserve.last_update_timestamp = now

    if reserve.liquidity_index < previous_liquidity_index or reserve.variable_borrow_index < previous_variable_borrow_index:
        raise MathOverflowError("Reserve {0} index decreased".format(reserve.asset))

    logger.debug(
        "Reserve state updated asset=%s liquidity_index=%s variable_borrow_index=%s treasury_minted=%s",
        reserve.asset,
        reserve.liquidity_index,
        reserve.variable_borrow_index,
        minted,
    )
    return minted


def update_interest_rates(
    reserve: ReserveData,
    liquidity_added: int,
    liquidity_taken: int,
    now: int,
) -> InterestRates:
    """Recompute and store the reserve's rates from post-mutation totals.

    Raises:
        InsufficientLiquidityError: If the liquidity taken exceeds what the reserve holds.
    """
    total_stable_debt, average_stable_rate = reserve.stable_debt_token.get_total_supply_and_avg_rate(now)
    total_variable_debt = ray_mul(
        reserve.variable_debt_token.scaled_total_supply(), reserve.variable_borrow_index
    )
    available_liquidity = reserve.deposit_token.available_liquidity() + liquidity_added - liquidity_taken
    if available_liquidity < 0:
        raise InsufficientLiquidityError(
            "Reserve {0} cannot release {1}; available {2}".format(
                reserve.asset, liquidity_taken, available_liquidity + liquidity_taken - liquidity_added
            )
        )

    rates = reserve.strategy.calculate_interest_rates(
        reserve.asset,
        available_liquidity,
        total_stable_debt,
        total_variable_debt,
        average_stable_rate,
        reserve.configuration.reserve_factor_bps,
    )
    reserve.current_liquidity_rate = rates.liquidity_rate
    reserve.current_stable_borrow_rate = rates.stable_borrow_rate
    reserve.current_variable_borrow_rate = rates.variable_borrow_rate

    logger.debug(
        "Interest rates updated asset=%s liquidity_rate=%s stable_rate=%s variable_rate=%s",
        reserve.asset,
        rates.liquidity_rate,
        rates.stable_borrow_rate,
        rates.variable_borrow_rate,
    )
    return rates


def cumulate_to_liquidity_index(reserve: ReserveData, total_liquidity: int, amount: int) -> int:
    """Distribute ``amount`` to depositors by growing the liquidity index.

    Returns:
        int: The new liquidity index.
    """
    amount_to_liquidity_ratio = ray_div(wad_to_ray(amount), wad_to_ray(total_liquidity))
    reserve.liquidity_index = ray_mul(amount_to_liquidity_ratio + RAY, reserve.liquidity_index)
    return reserve.liquidity_index
