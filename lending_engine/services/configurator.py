"""Administrative reserve configuration changes."""

import logging
from typing import Any, Union

from ..models.events import ReserveConfigurationChangedEvent
from ..models.exceptions import InvalidConfigurationError, ReserveLiquidityNotZeroError
from ..models.reserve_config import InterestRateStrategyModel
from . import reserve_logic
from .lending_pool import LendingPool
from .rate_strategy import InterestRateStrategy


logger = logging.getLogger(__name__)


class ReserveConfigurator:
    """Applies risk-parameter and status changes to listed reserves.

    Every change is re-validated through ``ReserveConfigModel`` and recorded
    as a ``ReserveConfigurationChanged`` event on the pool.
    """

    def __init__(self, pool: LendingPool) -> None:
        self._pool = pool

    def _update(self, asset: str, **changes: Any) -> None:
        with self._pool.transaction("configure_reserve"):
            reserve = self._pool.get_reserve(asset)
            try:
                configuration = reserve.configuration.with_updates(**changes)
            except ValueError as exc:
                raise InvalidConfigurationError("Invalid configuration for {0}: {1}".format(asset, exc)) from exc
            self._pool.set_configuration(asset, configuration)
            now = self._pool.clock.now()
            for parameter, value in changes.items():
                self._pool.record_event(
                    ReserveConfigurationChangedEvent(timestamp=now, asset=asset, parameter=parameter, value=str(value))
                )
            logger.info("Reserve configuration updated asset=%s changes=%s", asset, changes)

    def activate_reserve(self, asset: str) -> None:
        self._update(asset, active=True)

    def deactivate_reserve(self, asset: str) -> None:
        """Deactivate a reserve that no longer holds any liquidity.

        Raises:
            ReserveLiquidityNotZeroError: If deposits remain in the reserve.
        """
        with self._pool.transaction("deactivate_reserve"):
            reserve = self._pool.get_reserve(asset)
            deposits = reserve.deposit_token.total_supply(
                reserve_logic.get_normalized_income(reserve, self._pool.clock.now())
            )
            if reserve.deposit_token.available_liquidity() != 0 or deposits != 0:
                raise ReserveLiquidityNotZeroError("Reserve {0} still holds liquidity".format(asset))
            self._update(asset, active=False)

    def freeze_reserve(self, asset: str) -> None:
        self._update(asset, frozen=True)

    def unfreeze_reserve(self, asset: str) -> None:
        self._update(asset, frozen=False)

    def enable_borrowing_on_reserve(self, asset: str, stable_borrow_rate_enabled: bool) -> None:
        self._update(asset, borrowing_enabled=True, stable_borrow_rate_enabled=stable_borrow_rate_enabled)

    def disable_borrowing_on_reserve(self, asset: str) -> None:
        self._update(asset, borrowing_enabled=False)

    def enable_reserve_stable_rate(self, asset: str) -> None:
        self._update(asset, stable_borrow_rate_enabled=True)

    def disable_reserve_stable_rate(self, asset: str) -> None:
        self._update(asset, stable_borrow_rate_enabled=False)

    def configure_reserve_as_collateral(
        self,
        asset: str,
        ltv_bps: int,
        liquidation_threshold_bps: int,
        liquidation_bonus_bps: int,
    ) -> None:
        """Set collateral parameters; a zero threshold disables collateral use.

        Disabling requires that no depositor's account depends on it, which
        is checked through the deposits currently outstanding.
        """
        if liquidation_threshold_bps == 0:
            reserve = self._pool.get_reserve(asset)
            deposits = reserve.deposit_token.scaled_total_supply()
            if deposits != 0:
                raise ReserveLiquidityNotZeroError(
                    "Cannot disable collateral on {0} while deposits exist".format(asset)
                )
        self._update(
            asset,
            ltv_bps=ltv_bps,
            liquidation_threshold_bps=liquidation_threshold_bps,
            liquidation_bonus_bps=liquidation_bonus_bps,
        )

    def set_reserve_factor(self, asset: str, reserve_factor_bps: int) -> None:
        self._update(asset, reserve_factor_bps=reserve_factor_bps)

    def set_rate_strategy(self, asset: str, strategy: Union[InterestRateStrategy, InterestRateStrategyModel]) -> None:
        with self._pool.transaction("set_rate_strategy"):
            self._pool.set_rate_strategy(asset, strategy)
            self._pool.record_event(
                ReserveConfigurationChangedEvent(
                    timestamp=self._pool.clock.now(), asset=asset, parameter="strategy", value=type(strategy).__name__
                )
            )
            logger.info("Rate strategy updated asset=%s", asset)
