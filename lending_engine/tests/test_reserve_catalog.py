"""Unit tests for reserve listings and their validated models."""

import unittest

from pydantic import ValidationError

from lending_engine.common.protocol_constants import RAY
from lending_engine.common.reserve_catalog import ReserveCatalog
from lending_engine.models.enums import DepositTokenKind
from lending_engine.models.exceptions import UnknownReserveError
from lending_engine.models.reserve_config import InterestRateStrategyModel, ReserveConfigModel, ReserveListingModel


class ReserveCatalogTests(unittest.TestCase):
    """Validate loading and lookup of reserve listings."""

    def setUp(self) -> None:
        """Catalog with one valid and one invalid listing."""
        self.catalog = ReserveCatalog(
            reserves={
                "dai": {
                    "ltv_bps": 7500,
                    "liquidation_threshold_bps": 8000,
                    "liquidation_bonus_bps": 10500,
                    "borrowing_enabled": True,
                    "strategy": {"variable_rate_slope1": "0.04"},
                },
                "BROKEN": {"ltv_bps": 9000, "liquidation_threshold_bps": 8000, "liquidation_bonus_bps": 10500},
            }
        )

    def test_invalid_listing_is_skipped(self) -> None:
        """Listings failing validation should not be loaded."""
        self.assertEqual(self.catalog.assets(), ["DAI"])

    def test_lookup_is_case_insensitive(self) -> None:
        """Assets should be found regardless of case."""
        listing = self.catalog.get(" dai ")
        self.assertEqual(listing.configuration.ltv_bps, 7500)
        self.assertEqual(listing.strategy.variable_rate_slope1, 4 * RAY // 100)

    def test_unknown_asset(self) -> None:
        """Missing listings should raise a protocol error."""
        with self.assertRaises(UnknownReserveError):
            self.catalog.get("WBTC")

    def test_bundled_catalog(self) -> None:
        """The packaged configuration should list stETH as a rebasing reserve."""
        catalog = ReserveCatalog()
        self.assertEqual(catalog.get("STETH").deposit_token_kind, DepositTokenKind.REBASING)
        self.assertFalse(catalog.get("STETH").configuration.borrowing_enabled)
        self.assertEqual(catalog.get("USDC").configuration.decimals, 6)

    def test_reload_picks_up_bundled_listings(self) -> None:
        """Reloading an explicitly built catalog should keep every bundled listing."""
        catalog = ReserveCatalog()
        before = catalog.assets()
        catalog.reload()
        self.assertEqual(catalog.assets(), before)
        self.assertIn("WETH", catalog.assets())


class ReserveModelTests(unittest.TestCase):
    """Validate risk-parameter rules."""

    def test_ltv_above_threshold_rejected(self) -> None:
        """The loan-to-value may not exceed the liquidation threshold."""
        with self.assertRaises(ValidationError):
            ReserveConfigModel(ltv_bps=8500, liquidation_threshold_bps=8000, liquidation_bonus_bps=10500)

    def test_bonus_must_exceed_one(self) -> None:
        """A collateral bonus at or below 100% is invalid."""
        with self.assertRaises(ValidationError):
            ReserveConfigModel(ltv_bps=7000, liquidation_threshold_bps=8000, liquidation_bonus_bps=10000)

    def test_threshold_times_bonus_capped(self) -> None:
        """Threshold times bonus may not exceed 100%."""
        with self.assertRaises(ValidationError):
            ReserveConfigModel(ltv_bps=9000, liquidation_threshold_bps=9500, liquidation_bonus_bps=11000)

    def test_collateral_disabled_requires_zero_bonus(self) -> None:
        """Disabled collateral must not carry a bonus."""
        with self.assertRaises(ValidationError):
            ReserveConfigModel(liquidation_threshold_bps=0, liquidation_bonus_bps=10500)
        self.assertFalse(ReserveConfigModel().usable_as_collateral)

    def test_with_updates_revalidates(self) -> None:
        """Updated copies should be validated and leave the original untouched."""
        original = ReserveConfigModel(ltv_bps=7000, liquidation_threshold_bps=8000, liquidation_bonus_bps=10500)
        updated = original.with_updates(frozen=True)
        self.assertTrue(updated.frozen)
        self.assertFalse(original.frozen)
        with self.assertRaises(ValidationError):
            original.with_updates(ltv_bps=9000)

    def test_rate_strings_become_ray(self) -> None:
        """Human rates should be converted while integers are taken as ray."""
        strategy = InterestRateStrategyModel(optimal_utilization_rate="0.9", base_stable_borrow_rate=RAY // 10)
        self.assertEqual(strategy.optimal_utilization_rate, 9 * RAY // 10)
        self.assertEqual(strategy.excess_utilization_rate, RAY // 10)
        self.assertEqual(strategy.base_stable_borrow_rate, RAY // 10)
        with self.assertRaises(ValidationError):
            InterestRateStrategyModel(variable_rate_slope1="fast")

    def test_listing_accepts_flat_layout(self) -> None:
        """Risk fields next to the strategy should be nested into the configuration."""
        listing = ReserveListingModel.model_validate(
            {"asset": "weth", "ltv_bps": 8000, "liquidation_threshold_bps": 8250, "liquidation_bonus_bps": 10500}
        )
        self.assertEqual(listing.asset, "WETH")
        self.assertEqual(listing.configuration.liquidation_threshold_bps, 8250)


if __name__ == "__main__":
    unittest.main()
