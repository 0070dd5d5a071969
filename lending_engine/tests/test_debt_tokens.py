"""Unit tests for stable and variable debt tokens."""

import unittest

from lending_engine.common.protocol_constants import RAY, SECONDS_PER_YEAR, WAD
from lending_engine.models.exceptions import (
    BorrowAllowanceNotEnoughError,
    DebtOverpaymentError,
    InvalidAmountError,
)
from lending_engine.services.debt_tokens import StableDebtToken, VariableDebtToken


NOW = 1_600_000_000


class VariableDebtTokenTests(unittest.TestCase):
    """Validate scaled variable debt and credit delegation."""

    def setUp(self) -> None:
        """Create an empty variable debt token."""
        self.token = VariableDebtToken("DAI", "variableDebtDAI")

    def test_balance_grows_with_index(self) -> None:
        """Debt minted at one index should be worth more at a higher index."""
        self.assertTrue(self.token.mint("alice", "alice", 100 * WAD, RAY))
        self.assertFalse(self.token.mint("alice", "alice", 100 * WAD, RAY))
        self.assertEqual(self.token.balance_of("alice", 11 * RAY // 10), 220 * WAD)
        self.assertEqual(self.token.total_supply(11 * RAY // 10), 220 * WAD)

    def test_overpayment_is_rejected(self) -> None:
        """Burning more than the current debt should raise."""
        self.token.mint("alice", "alice", 100 * WAD, RAY)
        with self.assertRaises(DebtOverpaymentError):
            self.token.burn("alice", 101 * WAD, RAY)

    def test_full_burn_clears_balance(self) -> None:
        """Burning the full current debt should leave nothing behind."""
        self.token.mint("alice", "alice", 100 * WAD, RAY)
        index = 11 * RAY // 10
        self.token.burn("alice", self.token.balance_of("alice", index), index)
        self.assertEqual(self.token.scaled_balance_of("alice"), 0)
        self.assertEqual(self.token.scaled_total_supply(), 0)

    def test_delegated_mint_consumes_allowance(self) -> None:
        """Borrowing for another account should require and reduce its delegation."""
        with self.assertRaises(BorrowAllowanceNotEnoughError):
            self.token.mint("dave", "alice", 10 * WAD, RAY)
        self.token.approve_delegation("alice", "dave", 50 * WAD)
        self.token.mint("dave", "alice", 50 * WAD, RAY)
        self.assertEqual(self.token.borrow_allowance("alice", "dave"), 0)
        self.assertEqual(self.token.balance_of("alice", RAY), 50 * WAD)
        self.assertEqual(self.token.balance_of("dave", RAY), 0)

    def test_zero_amount_rejected(self) -> None:
        """Minting an amount that scales to zero should raise."""
        with self.assertRaises(InvalidAmountError):
            self.token.mint("alice", "alice", 0, RAY)


class StableDebtTokenTests(unittest.TestCase):
    """Validate per-user coupons and the reserve average stable rate."""

    def setUp(self) -> None:
        """Create an empty stable debt token."""
        self.token = StableDebtToken("DAI", "stableDebtDAI")

    def test_average_rate_is_principal_weighted(self) -> None:
        """Two borrowers should produce the weighted mean of their coupons."""
        self.token.mint("alice", "alice", 100 * WAD, RAY // 10, NOW)
        self.token.mint("bob", "bob", 300 * WAD, RAY // 5, NOW)
        self.assertEqual(self.token.get_average_stable_rate(), 175 * RAY // 1_000)
        self.assertEqual(self.token.total_supply(NOW), 400 * WAD)
        self.assertEqual(self.token.get_total_supply_last_updated(), NOW)

    def test_burn_removes_user_contribution(self) -> None:
        """Repaying one borrower should restore the other borrower's coupon as average."""
        self.token.mint("alice", "alice", 100 * WAD, RAY // 10, NOW)
        self.token.mint("bob", "bob", 300 * WAD, RAY // 5, NOW)
        self.token.burn("bob", 300 * WAD, NOW)
        self.assertEqual(self.token.get_average_stable_rate(), RAY // 10)
        self.assertEqual(self.token.get_user_stable_rate("bob"), 0)
        self.token.burn("alice", 100 * WAD, NOW)
        self.assertEqual(self.token.get_average_stable_rate(), 0)
        self.assertEqual(self.token.total_supply(NOW), 0)

    def test_user_rate_is_weighted_on_second_mint(self) -> None:
        """A second borrow should blend the user's coupon with the new rate."""
        self.token.mint("alice", "alice", 100 * WAD, RAY // 10, NOW)
        self.token.mint("alice", "alice", 100 * WAD, 3 * RAY // 10, NOW)
        self.assertEqual(self.token.get_user_stable_rate("alice"), RAY // 5)

    def test_balance_compounds_from_user_timestamp(self) -> None:
        """One year at 10% should compound to the exact three-term series value."""
        self.token.mint("alice", "alice", 100 * WAD, RAY // 10, NOW)
        balance = self.token.balance_of("alice", NOW + SECONDS_PER_YEAR)
        self.assertEqual(balance, 110_516_727_001_520_218_856)
        self.assertEqual(self.token.total_supply(NOW + SECONDS_PER_YEAR), balance)

    def test_overpayment_is_rejected(self) -> None:
        """Burning more than the accrued stable debt should raise."""
        self.token.mint("alice", "alice", 100 * WAD, RAY // 10, NOW)
        with self.assertRaises(DebtOverpaymentError):
            self.token.burn("alice", 101 * WAD, NOW)


if __name__ == "__main__":
    unittest.main()
