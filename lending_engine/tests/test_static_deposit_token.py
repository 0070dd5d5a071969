"""Unit tests for the static deposit-token wrapper."""

import unittest

from lending_engine.common.protocol_constants import MAX_UINT256, RAY
from lending_engine.models.enums import InterestRateMode
from lending_engine.models.exceptions import InvalidAmountError, NotEnoughAvailableUserBalanceError
from lending_engine.services.pool_factory import REWARD_ASSET
from lending_engine.services.static_deposit_token import StaticDepositToken
from lending_engine.tests.support import ONE_YEAR, build_bundle, fund_and_deposit, units


class StaticDepositTokenTests(unittest.TestCase):
    """Validate static balances, unwrapping and reward sharing of the wrapper."""

    def setUp(self) -> None:
        """DAI deposits emit one reward unit per second to the wrapper."""
        self.bundle = build_bundle(with_incentives=True)
        self.pool = self.bundle.pool
        self.clock = self.bundle.clock
        self.dai = self.bundle.ledgers["DAI"]
        self.rewards = self.bundle.ledgers[REWARD_ASSET]
        controller = self.bundle.incentives_controller
        controller.configure_asset("aDAI", units(1), self.pool.get_reserve("DAI").deposit_token)
        self.rewards.mint(controller.rewards_vault, units(10**9))
        self.wrapper = StaticDepositToken(self.pool, "DAI", controller, self.rewards)
        self.dai.mint("alice", units(1_000))
        self.dai.mint("bob", units(1_000))

    def test_deposit_mints_static_amount(self) -> None:
        """At a unit rate the static amount equals the deposit."""
        minted = self.wrapper.deposit("alice", units(1_000))
        self.assertEqual(minted, units(1_000))
        self.assertEqual(self.wrapper.balance_of("alice"), units(1_000))
        self.assertEqual(self.wrapper.total_supply(), units(1_000))
        self.assertEqual(
            self.pool.get_user_reserve_data("DAI", self.wrapper.address).current_deposit_balance, units(1_000)
        )

    def test_zero_deposit_rejected(self) -> None:
        """Wrapping nothing should be rejected."""
        with self.assertRaises(InvalidAmountError):
            self.wrapper.deposit("alice", 0)

    def test_rewards_accrue_to_single_holder(self) -> None:
        """The only holder should receive the whole emission."""
        self.wrapper.deposit("alice", units(1_000))
        self.clock.advance(100)
        self.assertEqual(self.wrapper.get_claimable_rewards("alice"), units(100))
        self.assertEqual(self.wrapper.get_total_claimable_rewards(), units(100))

        claimed = self.wrapper.claim_rewards("alice")
        self.assertEqual(claimed, units(100))
        self.assertEqual(self.rewards.balance_of("alice"), units(100))
        self.assertEqual(self.wrapper.get_claimable_rewards("alice"), 0)

    def test_rewards_split_between_holders(self) -> None:
        """Equal static balances should earn equal rewards from the moment both hold."""
        self.wrapper.deposit("alice", units(1_000))
        self.clock.advance(100)
        self.wrapper.claim_rewards("alice")
        self.wrapper.deposit("bob", units(1_000))
        self.clock.advance(100)

        self.assertEqual(self.wrapper.get_claimable_rewards("alice"), units(50))
        self.assertEqual(self.wrapper.get_claimable_rewards("bob"), units(50))

    def test_transfer_moves_future_rewards(self) -> None:
        """Rewards accrued before a transfer stay with the sender."""
        self.wrapper.deposit("alice", units(1_000))
        self.clock.advance(100)
        self.wrapper.transfer("alice", "bob", units(500))
        self.clock.advance(100)

        self.assertEqual(self.wrapper.get_claimable_rewards("alice"), units(150))
        self.assertEqual(self.wrapper.get_claimable_rewards("bob"), units(50))

    def test_withdraw_all(self) -> None:
        """Unwrapping the whole balance should return the deposit."""
        self.wrapper.deposit("alice", units(1_000))
        withdrawn = self.wrapper.withdraw("alice", MAX_UINT256)
        self.assertEqual(withdrawn, units(1_000))
        self.assertEqual(self.dai.balance_of("alice"), units(1_000))
        self.assertEqual(self.wrapper.total_supply(), 0)

    def test_withdraw_as_deposit_tokens(self) -> None:
        """Unwrapping without redeeming should hand over deposit tokens."""
        self.wrapper.deposit("alice", units(1_000))
        self.wrapper.withdraw("alice", units(400), to_underlying=False)
        self.assertEqual(self.pool.get_user_reserve_data("DAI", "alice").current_deposit_balance, units(400))
        self.assertEqual(self.wrapper.balance_of("alice"), units(600))

    def test_over_withdraw_rolls_back(self) -> None:
        """A failed unwrap should leave wrapper, rewards and pool untouched."""
        self.wrapper.deposit("alice", units(1_000))
        self.clock.advance(100)
        wrapper_state = self.wrapper.snapshot()
        reward_state = self.rewards.snapshot()
        pool_balance = self.pool.get_user_reserve_data("DAI", self.wrapper.address).current_deposit_balance

        with self.assertRaises(NotEnoughAvailableUserBalanceError):
            self.wrapper.withdraw("alice", units(1_000) + 1)

        self.assertEqual(self.wrapper.snapshot(), wrapper_state)
        self.assertEqual(self.rewards.snapshot(), reward_state)
        self.assertEqual(
            self.pool.get_user_reserve_data("DAI", self.wrapper.address).current_deposit_balance, pool_balance
        )
        self.assertEqual(self.wrapper.get_claimable_rewards("alice"), units(100))

    def test_rate_follows_interest(self) -> None:
        """Interest earned by the reserve should raise the rate, not the static balance."""
        self.wrapper.deposit("alice", units(1_000))
        fund_and_deposit(self.bundle, "carol", "DAI", units(10_000))
        fund_and_deposit(self.bundle, "dave", "WETH", units(10))
        self.pool.borrow("dave", "DAI", units(5_000), InterestRateMode.VARIABLE)
        self.clock.advance(ONE_YEAR)

        self.assertGreater(self.wrapper.rate(), RAY)
        self.assertEqual(self.wrapper.balance_of("alice"), units(1_000))
        dynamic = self.wrapper.dynamic_balance_of("alice")
        self.assertGreater(dynamic, units(1_000))
        self.assertEqual(
            dynamic, self.pool.get_user_reserve_data("DAI", self.wrapper.address).current_deposit_balance
        )

        withdrawn = self.wrapper.withdraw("alice", MAX_UINT256)
        self.assertEqual(withdrawn, dynamic)
        self.assertEqual(self.dai.balance_of("alice"), dynamic)


if __name__ == "__main__":
    unittest.main()
