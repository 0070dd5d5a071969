"""In-memory implementations of the engine's external collaborators."""

from .incentives import EmissionIncentivesController
from .ledgers import InMemoryAssetLedger, RebasingAssetLedger
from .oracles import StaticLendingRateOracle, StaticPriceOracle

__all__ = [
    "EmissionIncentivesController",
    "InMemoryAssetLedger",
    "RebasingAssetLedger",
    "StaticLendingRateOracle",
    "StaticPriceOracle",
]
