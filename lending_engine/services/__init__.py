"""Service layer exports."""

from .configurator import ReserveConfigurator
from .lending_pool import LendingPool, PoolContext, ReserveDataView
from .pool_factory import PoolBundle, build_pool_from_settings
from .rate_strategy import InterestRates, InterestRateStrategy
from .static_deposit_token import StaticDepositToken

__all__ = [
    "LendingPool",
    "PoolContext",
    "ReserveDataView",
    "ReserveConfigurator",
    "InterestRates",
    "InterestRateStrategy",
    "PoolBundle",
    "build_pool_from_settings",
    "StaticDepositToken",
]
