"""Integration tests for flash loans."""

import unittest

from lending_engine.common.protocol_constants import RAY
from lending_engine.models.enums import InterestRateMode
from lending_engine.models.events import FlashLoanEvent
from lending_engine.models.exceptions import (
    CollateralBalanceZeroError,
    FlashLoanNotRepaidError,
    InconsistentProtocolBalanceError,
    InsufficientLiquidityError,
    LoanTooSmallError,
)
from lending_engine.models.reserve_config import InterestRateStrategyModel
from lending_engine.tests.support import MockFlashLoanReceiver, build_bundle, fund_and_deposit, units


class FlashLoanTests(unittest.TestCase):
    """Validate premiums, index growth and rollback of flash loans."""

    def setUp(self) -> None:
        """Alice supplies one WETH."""
        self.bundle = build_bundle(("WETH",))
        self.pool = self.bundle.pool
        self.weth = self.bundle.ledgers["WETH"]
        fund_and_deposit(self.bundle, "alice", "WETH", units(1))
        self.receiver = MockFlashLoanReceiver(self.pool, self.bundle.ledgers)

    def _state(self):
        reserve = self.pool.get_reserve("WETH")
        return reserve.snapshot(), reserve.deposit_token.snapshot(), self.weth.snapshot(), len(self.pool.events)

    def test_premium_grows_liquidity_index(self) -> None:
        """The depositors' share of the premium should be added to the index."""
        premiums = self.pool.flash_loan("alice", self.receiver, ["WETH"], [8 * 10**17])
        self.assertEqual(premiums, [720_000_000_000_000])

        data = self.pool.get_reserve_data("WETH")
        self.assertEqual(data.liquidity_index, 1_000_504_000_000_000_000_000_000_000)
        self.assertEqual(data.total_liquidity, 1_000_504_000_000_000_000)
        self.assertEqual(self.weth.balance_of("treasury"), 216_000_000_000_000)
        event = [event for event in self.pool.events if isinstance(event, FlashLoanEvent)][-1]
        self.assertEqual(event.premium, 720_000_000_000_000)

    def test_second_loan_of_entire_liquidity(self) -> None:
        """A loan of all available liquidity should compound onto the first premium."""
        self.pool.flash_loan("alice", self.receiver, ["WETH"], [8 * 10**17])
        self.pool.flash_loan("alice", self.receiver, ["WETH"], [1_000_504_000_000_000_000])

        data = self.pool.get_reserve_data("WETH")
        self.assertEqual(data.liquidity_index, 1_001_134_317_520_000_000_000_000_000)
        self.assertEqual(data.total_liquidity, 1_001_134_317_520_000_000)
        self.assertEqual(self.weth.balance_of("treasury"), 486_136_080_000_000)

    def test_depositor_withdraws_premium(self) -> None:
        """The liquidity provider should be able to withdraw its share of the premium."""
        self.pool.flash_loan("alice", self.receiver, ["WETH"], [8 * 10**17])
        balance = self.pool.get_user_reserve_data("WETH", "alice").current_deposit_balance
        self.assertEqual(balance, 1_000_504_000_000_000_000)
        self.assertEqual(self.pool.withdraw("alice", "WETH", balance), balance)

    def test_failed_execution_rolls_back(self) -> None:
        """A receiver reporting failure should leave state byte-identical."""
        before = self._state()
        self.receiver.fail_execution = True
        with self.assertRaises(FlashLoanNotRepaidError):
            self.pool.flash_loan("alice", self.receiver, ["WETH"], [8 * 10**17])
        self.assertEqual(self._state(), before)
        self.assertEqual(self.weth.balance_of(self.receiver.address), 0)

    def test_unrepaid_loan_rolls_back(self) -> None:
        """Keeping the funds without opening debt should be rejected."""
        before = self._state()
        self.receiver.repay = False
        with self.assertRaises(InconsistentProtocolBalanceError):
            self.pool.flash_loan("alice", self.receiver, ["WETH"], [8 * 10**17])
        self.assertEqual(self._state(), before)

    def test_rollback_restores_rate_strategy(self) -> None:
        """A strategy swapped by a failing receiver should not survive the rollback."""
        original = self.pool.get_reserve("WETH").strategy
        pool = self.pool

        class StrategySwappingReceiver(MockFlashLoanReceiver):
            def execute_operation(self, assets, amounts, premiums, initiator, params):
                pool.set_rate_strategy("WETH", InterestRateStrategyModel(variable_rate_slope1=RAY))
                return False

        receiver = StrategySwappingReceiver(self.pool, self.bundle.ledgers)
        with self.assertRaises(FlashLoanNotRepaidError):
            self.pool.flash_loan("alice", receiver, ["WETH"], [8 * 10**17])
        self.assertIs(self.pool.get_reserve("WETH").strategy, original)

    def test_loan_too_small(self) -> None:
        """A loan whose premium rounds to zero should be rejected."""
        with self.assertRaises(LoanTooSmallError):
            self.pool.flash_loan("alice", self.receiver, ["WETH"], [1_000])

    def test_loan_above_liquidity(self) -> None:
        """A loan larger than the reserve's balance should be rejected."""
        with self.assertRaises(InsufficientLiquidityError):
            self.pool.flash_loan("alice", self.receiver, ["WETH"], [units(2)])


class FlashLoanDebtModeTests(unittest.TestCase):
    """Validate flash loans that are kept as debt."""

    def setUp(self) -> None:
        """Alice supplies DAI, bob posts WETH collateral."""
        self.bundle = build_bundle()
        self.pool = self.bundle.pool
        fund_and_deposit(self.bundle, "alice", "DAI", units(1_000))
        fund_and_deposit(self.bundle, "bob", "WETH", units(1))
        self.receiver = MockFlashLoanReceiver(self.pool, self.bundle.ledgers)
        self.receiver.repay = False

    def test_variable_mode_opens_debt(self) -> None:
        """Borrowed funds stay with the receiver and the initiator owes variable debt."""
        self.pool.flash_loan(
            "bob", self.receiver, ["DAI"], [units(100)], modes=[InterestRateMode.VARIABLE]
        )
        self.assertEqual(self.pool.get_user_reserve_data("DAI", "bob").current_variable_debt, units(100))
        self.assertEqual(self.bundle.ledgers["DAI"].balance_of(self.receiver.address), units(100))
        self.assertEqual(self.bundle.ledgers["DAI"].balance_of("treasury"), 0)
        self.assertTrue(self.pool.get_user_configuration("bob").is_borrowing("DAI"))

    def test_debt_mode_requires_collateral(self) -> None:
        """An initiator without collateral cannot keep the funds."""
        with self.assertRaises(CollateralBalanceZeroError):
            self.pool.flash_loan(
                "carol", self.receiver, ["DAI"], [units(100)], modes=[InterestRateMode.VARIABLE]
            )
        self.assertEqual(self.bundle.ledgers["DAI"].balance_of(self.receiver.address), 0)


if __name__ == "__main__":
    unittest.main()
