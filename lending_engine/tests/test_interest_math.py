"""Unit tests for linear and compounded interest factors."""

from decimal import Decimal
import unittest

from lending_engine.common.math_utils import calculate_compounded_interest, calculate_linear_interest
from lending_engine.common.protocol_constants import RAY, SECONDS_PER_YEAR, WAD
from lending_engine.common.wad_ray_math import ray_mul
from lending_engine.models.exceptions import MathOverflowError


START = 1_600_000_000


class InterestMathTests(unittest.TestCase):
    """Validate growth factors against exact expectations."""

    def test_linear_interest_over_one_year(self) -> None:
        """Ten percent simple interest for a year should add exactly 0.1 ray."""
        factor = calculate_linear_interest(RAY // 10, START, START + SECONDS_PER_YEAR)
        self.assertEqual(factor, RAY + RAY // 10)

    def test_zero_elapsed_time_returns_one(self) -> None:
        """No elapsed time should leave both factors at one ray."""
        self.assertEqual(calculate_linear_interest(RAY, START, START), RAY)
        self.assertEqual(calculate_compounded_interest(RAY, START, START), RAY)

    def test_single_second_compounds_linearly(self) -> None:
        """With one elapsed second the higher binomial terms vanish."""
        rate = RAY // 10
        factor = calculate_compounded_interest(rate, START, START + 1)
        self.assertEqual(factor, RAY + rate // SECONDS_PER_YEAR)

    def test_compounded_interest_approximates_exponential(self) -> None:
        """One year at 10% should land just under e**0.1."""
        factor = calculate_compounded_interest(RAY // 10, START, START + SECONDS_PER_YEAR)
        exact = Decimal("0.1").exp() * RAY
        self.assertGreater(factor, RAY + RAY // 10)
        self.assertLess(Decimal(factor), exact)
        relative_error = (exact - Decimal(factor)) / exact
        self.assertLess(relative_error, Decimal("0.00001"))

    def test_compounded_interest_is_exact(self) -> None:
        """One year at 10% on 1000 units should match the truncated three-term series to the wei."""
        factor = calculate_compounded_interest(RAY // 10, START, START + SECONDS_PER_YEAR)
        self.assertEqual(ray_mul(1_000 * WAD, factor), 1_105_167_270_015_202_188_557)

    def test_backwards_time_raises(self) -> None:
        """A timestamp before the last update should be rejected."""
        with self.assertRaises(MathOverflowError):
            calculate_linear_interest(RAY, START, START - 1)
        with self.assertRaises(MathOverflowError):
            calculate_compounded_interest(RAY, START, START - 1)


if __name__ == "__main__":
    unittest.main()
