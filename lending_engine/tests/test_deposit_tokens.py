"""Unit tests for scaled deposit tokens."""

import unittest

from lending_engine.adapters.ledgers import InMemoryAssetLedger
from lending_engine.common.protocol_constants import RAY, WAD
from lending_engine.models.enums import DepositTokenKind
from lending_engine.models.exceptions import (
    InvalidAmountError,
    InvalidConfigurationError,
    NotEnoughAvailableUserBalanceError,
)
from lending_engine.services.deposit_tokens import ScaledDepositToken, create_deposit_token


INDEX = 11 * RAY // 10


class ScaledDepositTokenTests(unittest.TestCase):
    """Validate scaling, transfers and reconciliation of deposit balances."""

    def setUp(self) -> None:
        """Create a token whose reserve holds 110 DAI."""
        self.ledger = InMemoryAssetLedger("DAI")
        self.token = ScaledDepositToken("DAI", "aDAI", self.ledger, "treasury")
        self.ledger.mint("aDAI", 110 * WAD)

    def test_mint_scales_by_index(self) -> None:
        """Minted amounts should be stored divided by the liquidity index."""
        self.assertTrue(self.token.mint("alice", 110 * WAD, INDEX))
        self.assertEqual(self.token.scaled_balance_of("alice"), 100 * WAD)
        self.assertEqual(self.token.balance_of("alice", INDEX), 110 * WAD)
        self.assertEqual(self.token.balance_of("alice", 121 * RAY // 100), 121 * WAD)
        self.assertFalse(self.token.mint("alice", 11 * WAD, INDEX))

    def test_transfer_keeps_interest_with_owner(self) -> None:
        """Transferring half should move half of the scaled balance."""
        self.token.mint("alice", 110 * WAD, INDEX)
        before = self.token.transfer("alice", "bob", 55 * WAD, INDEX)
        self.assertEqual(before, (110 * WAD, 0))
        self.assertEqual(self.token.scaled_balance_of("alice"), 50 * WAD)
        self.assertEqual(self.token.scaled_balance_of("bob"), 50 * WAD)
        self.assertEqual(self.token.scaled_total_supply(), 100 * WAD)

    def test_burn_pays_underlying(self) -> None:
        """Burning should send underlying from the reserve to the receiver."""
        self.token.mint("alice", 110 * WAD, INDEX)
        self.token.burn("alice", "alice", 110 * WAD, INDEX)
        self.assertEqual(self.ledger.balance_of("alice"), 110 * WAD)
        self.assertEqual(self.token.scaled_balance_of("alice"), 0)

    def test_burn_above_balance_raises(self) -> None:
        """Burning more than the nominal balance should raise."""
        self.token.mint("alice", 110 * WAD, INDEX)
        with self.assertRaises(NotEnoughAvailableUserBalanceError):
            self.token.burn("alice", "alice", 111 * WAD, INDEX)

    def test_zero_mint_raises(self) -> None:
        """A mint that scales to zero should be rejected."""
        with self.assertRaises(InvalidAmountError):
            self.token.mint("alice", 0, INDEX)

    def test_treasury_mint_skips_dust(self) -> None:
        """Treasury mints should be silently skipped when they round to zero."""
        self.token.mint_to_treasury(0, INDEX)
        self.assertEqual(self.token.scaled_balance_of("treasury"), 0)
        self.token.mint_to_treasury(11 * WAD, INDEX)
        self.assertEqual(self.token.balance_of("treasury", INDEX), 11 * WAD)

    def test_reconcile_reports_divergence(self) -> None:
        """Supply should match held underlying plus debt, otherwise report the gap."""
        self.token.mint("alice", 110 * WAD, INDEX)
        self.assertIsNone(self.token.reconcile(INDEX, 0))
        divergence = self.token.reconcile(INDEX, 10 * WAD)
        self.assertIsNotNone(divergence)
        self.assertEqual(divergence.difference, 10 * WAD)
        self.assertEqual(self.token.balance_of("alice", INDEX), 110 * WAD)

    def test_rebasing_kind_requires_share_ledger(self) -> None:
        """A rebasing deposit token cannot wrap a plain ledger."""
        with self.assertRaises(InvalidConfigurationError):
            create_deposit_token(DepositTokenKind.REBASING, "DAI", "aDAI", self.ledger, "treasury")


if __name__ == "__main__":
    unittest.main()
