"""Unit tests for the emission incentives controller."""

import unittest

from lending_engine.adapters.incentives import get_asset_index, get_rewards
from lending_engine.common.protocol_constants import MAX_UINT256
from lending_engine.models.exceptions import ProtocolError
from lending_engine.services.pool_factory import REWARD_ASSET
from lending_engine.tests.support import build_bundle, fund_and_deposit, units


class AssetIndexTests(unittest.TestCase):
    """Validate the pure distribution index helpers."""

    def test_index_grows_with_time(self) -> None:
        """Emission over time divided by supply should grow the index."""
        self.assertEqual(get_asset_index(0, units(1), 0, units(1_000), 100, MAX_UINT256), 10**17)

    def test_index_stops_at_distribution_end(self) -> None:
        """Time after the distribution end should not count."""
        self.assertEqual(get_asset_index(0, units(1), 0, units(1_000), 100, 50), 5 * 10**16)
        self.assertEqual(get_asset_index(7, units(1), 60, units(1_000), 100, 50), 7)

    def test_index_unchanged_without_supply_or_emission(self) -> None:
        """Zero supply or zero emission should keep the index."""
        self.assertEqual(get_asset_index(3, units(1), 0, 0, 100, MAX_UINT256), 3)
        self.assertEqual(get_asset_index(3, 0, 0, units(1), 100, MAX_UINT256), 3)

    def test_rewards_from_index_delta(self) -> None:
        """Rewards should be the balance times the index delta."""
        self.assertEqual(get_rewards(units(1_000), 10**17, 0), units(100))


class EmissionIncentivesControllerTests(unittest.TestCase):
    """Validate reward accrual through pool deposit tokens."""

    def setUp(self) -> None:
        """DAI deposits emit one reward unit per second."""
        self.bundle = build_bundle(with_incentives=True)
        self.pool = self.bundle.pool
        self.clock = self.bundle.clock
        self.controller = self.bundle.incentives_controller
        self.rewards = self.bundle.ledgers[REWARD_ASSET]
        self.controller.configure_asset("aDAI", units(1), self.pool.get_reserve("DAI").deposit_token)
        self.rewards.mint(self.controller.rewards_vault, units(1_000_000))

    def test_single_depositor_earns_emission(self) -> None:
        """A sole depositor should accrue the full emission."""
        fund_and_deposit(self.bundle, "alice", "DAI", units(1_000))
        self.clock.advance(100)
        self.assertEqual(self.controller.get_rewards_balance(["aDAI"], "alice"), units(100))
        self.assertEqual(self.controller.reward_asset, REWARD_ASSET)
        self.assertEqual(self.controller.get_asset_data("aDAI").emission_per_second, units(1))

    def test_claim_transfers_from_vault(self) -> None:
        """Claiming should move rewards out of the vault."""
        fund_and_deposit(self.bundle, "alice", "DAI", units(1_000))
        self.clock.advance(100)
        claimed = self.controller.claim_rewards(["aDAI"], MAX_UINT256, "alice", "alice")
        self.assertEqual(claimed, units(100))
        self.assertEqual(self.rewards.balance_of("alice"), units(100))
        self.assertEqual(self.rewards.balance_of(self.controller.rewards_vault), units(999_900))
        self.assertEqual(self.controller.get_rewards_balance(["aDAI"], "alice"), 0)

    def test_partial_claim_keeps_remainder(self) -> None:
        """Claiming less than accrued should keep the rest unclaimed."""
        fund_and_deposit(self.bundle, "alice", "DAI", units(1_000))
        self.clock.advance(100)
        self.assertEqual(self.controller.claim_rewards(["aDAI"], units(40), "alice", "bob"), units(40))
        self.assertEqual(self.rewards.balance_of("bob"), units(40))
        self.assertEqual(self.controller.get_user_unclaimed_rewards("alice"), units(60))

    def test_emission_shared_by_balance(self) -> None:
        """Depositors should earn in proportion to their scaled balances."""
        fund_and_deposit(self.bundle, "alice", "DAI", units(3_000))
        fund_and_deposit(self.bundle, "bob", "DAI", units(1_000))
        self.clock.advance(100)
        self.assertEqual(self.controller.get_rewards_balance(["aDAI"], "alice"), units(75))
        self.assertEqual(self.controller.get_rewards_balance(["aDAI"], "bob"), units(25))

    def test_unregistered_asset_earns_nothing(self) -> None:
        """Deposits into reserves without emission should not accrue rewards."""
        fund_and_deposit(self.bundle, "alice", "WETH", units(1))
        self.clock.advance(100)
        self.assertEqual(self.controller.get_rewards_balance(["aWETH"], "alice"), 0)
        self.assertEqual(self.controller.claim_rewards(["aWETH"], MAX_UINT256, "alice", "alice"), 0)

    def test_failed_operation_restores_rewards(self) -> None:
        """Rewards accrued inside a rolled-back operation should be discarded."""
        fund_and_deposit(self.bundle, "alice", "DAI", units(1_000))
        self.clock.advance(100)
        state = self.controller.snapshot()
        with self.assertRaises(ProtocolError):
            self.pool.withdraw("alice", "DAI", units(2_000))
        self.assertEqual(self.controller.snapshot(), state)


if __name__ == "__main__":
    unittest.main()
