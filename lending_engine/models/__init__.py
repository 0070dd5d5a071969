"""Public model package exports for the reserve accounting engine."""

from .account import AccountData, UserConfiguration, UserReserveData
from .base import EngineModel, Snapshotable
from .enums import DepositTokenKind, InterestRateMode
from .exceptions import (
    FlashLoanNotRepaidError,
    HealthFactorNotBelowThresholdError,
    HealthFactorTooLowError,
    InconsistentProtocolBalanceError,
    InsufficientLiquidityError,
    MathOverflowError,
    OraclePriceUnavailableError,
    ProtocolError,
    TransferFailedError,
)
from .interfaces import AssetLedger, Clock, FlashLoanReceiver, IncentivesController, LendingRateOracle, PriceOracle

__all__ = [
    "AccountData",
    "UserConfiguration",
    "UserReserveData",
    "EngineModel",
    "Snapshotable",
    "DepositTokenKind",
    "InterestRateMode",
    "ProtocolError",
    "FlashLoanNotRepaidError",
    "HealthFactorNotBelowThresholdError",
    "HealthFactorTooLowError",
    "InconsistentProtocolBalanceError",
    "InsufficientLiquidityError",
    "MathOverflowError",
    "OraclePriceUnavailableError",
    "TransferFailedError",
    "AssetLedger",
    "Clock",
    "FlashLoanReceiver",
    "IncentivesController",
    "LendingRateOracle",
    "PriceOracle",
]
