"""Two-slope interest rate strategy driven by reserve utilization."""

from dataclasses import dataclass
import logging
from typing import Optional

from ..common.protocol_constants import PERCENTAGE_FACTOR
from ..common.wad_ray_math import percent_mul, ray_div, ray_mul, wad_to_ray
from ..models.interfaces import LendingRateOracle
from ..models.reserve_config import InterestRateStrategyModel


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterestRates:
    """Rates (ray, per year) produced for one reserve state."""

    liquidity_rate: int
    stable_borrow_rate: int
    variable_borrow_rate: int


def utilization_rate(available_liquidity: int, total_debt: int) -> int:
    """Borrowed share of total liquidity in ray, 0 without debt."""
    if total_debt == 0:
        return 0
    return ray_div(total_debt, available_liquidity + total_debt)


def overall_borrow_rate(
    total_stable_debt: int,
    total_variable_debt: int,
    current_variable_borrow_rate: int,
    current_average_stable_borrow_rate: int,
) -> int:
    """Debt-weighted mean of the variable rate and the average stable rate."""
    total_debt = total_stable_debt + total_variable_debt
    if total_debt == 0:
        return 0
    weighted_variable_rate = ray_mul(wad_to_ray(total_variable_debt), current_variable_borrow_rate)
    weighted_stable_rate = ray_mul(wad_to_ray(total_stable_debt), current_average_stable_borrow_rate)
    return ray_div(weighted_variable_rate + weighted_stable_rate, wad_to_ray(total_debt))


class InterestRateStrategy:
    """Rates rise linearly with utilization, steeply past the optimal point.

    The stable rate starts from a market rate supplied by an optional
    lending-rate oracle, falling back to ``base_stable_borrow_rate``.
    """

    def __init__(
        self,
        params: InterestRateStrategyModel,
        lending_rate_oracle: Optional[LendingRateOracle] = None,
    ) -> None:
        self.params = params
        self._lending_rate_oracle = lending_rate_oracle

    @property
    def optimal_utilization_rate(self) -> int:
        return self.params.optimal_utilization_rate

    @property
    def excess_utilization_rate(self) -> int:
        return self.params.excess_utilization_rate

    def get_max_variable_borrow_rate(self) -> int:
        return (
            self.params.base_variable_borrow_rate
            + self.params.variable_rate_slope1
            + self.params.variable_rate_slope2
        )

    def get_market_borrow_rate(self, asset: str) -> int:
        if self._lending_rate_oracle is None:
            return self.params.base_stable_borrow_rate
        return self._lending_rate_oracle.get_market_borrow_rate(asset)

    def calculate_interest_rates(
        self,
        asset: str,
        available_liquidity: int,
        total_stable_debt: int,
        total_variable_debt: int,
        average_stable_borrow_rate: int,
        reserve_factor: int,
    ) -> InterestRates:
        """Compute the reserve's rates for the given liquidity and debt composition.

        Args:
            asset: Reserve asset, used to query the market stable rate.
            available_liquidity: Underlying held by the reserve after the pending action.
            total_stable_debt: Outstanding stable debt including accrued interest.
            total_variable_debt: Outstanding variable debt including accrued interest.
            average_stable_borrow_rate: Weighted average stable coupon (ray).
            reserve_factor: Treasury share of interest in basis points.

        Returns:
            InterestRates: Liquidity, stable and variable rates in ray.
        """
        params = self.params
        total_debt = total_stable_debt + total_variable_debt
        utilization = utilization_rate(available_liquidity, total_debt)

        stable_borrow_rate = self.get_market_borrow_rate(asset)
        variable_borrow_rate = 0

        if utilization > params.optimal_utilization_rate:
            excess_utilization_ratio = ray_div(
                utilization - params.optimal_utilization_rate,
                params.excess_utilization_rate,
            )
            stable_borrow_rate += params.stable_rate_slope1 + ray_mul(
                params.stable_rate_slope2, excess_utilization_ratio
            )
            variable_borrow_rate = (
                params.base_variable_borrow_rate
                + params.variable_rate_slope1
                + ray_mul(params.variable_rate_slope2, excess_utilization_ratio)
            )
        else:
            stable_borrow_rate += ray_mul(
                params.stable_rate_slope1,
                ray_div(utilization, params.optimal_utilization_rate),
            )
            variable_borrow_rate = params.base_variable_borrow_rate + ray_div(
                ray_mul(utilization, params.variable_rate_slope1),
                params.optimal_utilization_rate,
            )

        liquidity_rate = percent_mul(
            ray_mul(
                overall_borrow_rate(
                    total_stable_debt,
                    total_variable_debt,
                    variable_borrow_rate,
                    average_stable_borrow_rate,
                ),
                utilization,
            ),
            PERCENTAGE_FACTOR - reserve_factor,
        )

        return InterestRates(
            liquidity_rate=liquidity_rate,
            stable_borrow_rate=stable_borrow_rate,
            variable_borrow_rate=variable_borrow_rate,
        )
