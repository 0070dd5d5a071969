"""Unit tests for price path simulation and health-factor stress testing."""

import unittest

import numpy as np

from lending_engine.common.protocol_constants import WAD
from lending_engine.models.enums import InterestRateMode
from lending_engine.simulation.price_paths import SimulationConfig, deterministic_shock_path, simulate_gbm_paths
from lending_engine.simulation.stress import (
    RESULT_COLUMNS,
    SUMMARY_COLUMNS,
    collect_exposures,
    health_factor_paths,
    run_stress_test,
    shocked_oracle,
    summarize_stress_results,
)
from lending_engine.tests.support import build_bundle, fund_and_deposit, units


class PricePathTests(unittest.TestCase):
    """Validate the shape and reproducibility of simulated paths."""

    def test_paths_shape_and_start(self) -> None:
        """Paths should start at the current price and have one column per step plus one."""
        paths = simulate_gbm_paths(2.0, SimulationConfig(n_simulations=50, n_steps=10), seed=7)
        self.assertEqual(paths.shape, (50, 11))
        self.assertTrue(np.all(paths[:, 0] == 2.0))
        self.assertTrue(np.all(paths > 0))

    def test_seed_is_reproducible(self) -> None:
        """The same seed should give the same paths."""
        config = SimulationConfig(n_simulations=20, n_steps=5)
        np.testing.assert_array_equal(simulate_gbm_paths(1.0, config, 3), simulate_gbm_paths(1.0, config, 3))

    def test_deterministic_shock(self) -> None:
        """A deterministic shock should move linearly to the target factor."""
        np.testing.assert_allclose(deterministic_shock_path(-0.5, 2), [[1.0, 0.75, 0.5]])


class StressTestTests(unittest.TestCase):
    """Validate stress results against the pool's own health factor."""

    def setUp(self) -> None:
        """Bob borrows 2000 DAI against one WETH supplied next to alice's DAI."""
        self.bundle = build_bundle()
        self.pool = self.bundle.pool
        fund_and_deposit(self.bundle, "alice", "DAI", units(10_000))
        fund_and_deposit(self.bundle, "bob", "WETH", units(1))
        self.pool.borrow("bob", "DAI", units(2_000), InterestRateMode.VARIABLE)

    def _bob(self):
        return collect_exposures(self.pool, ["bob"])[0]

    def test_exposure_matches_pool_health_factor(self) -> None:
        """The exposure's health factor should agree with the pool at current prices."""
        pool_hf = self.pool.get_user_account_data("bob").health_factor / WAD
        self.assertAlmostEqual(self._bob().current_health_factor, pool_hf, places=6)

    def test_shocked_health_factor_matches_pool(self) -> None:
        """A 20% collateral drop should match the pool evaluated with a shocked oracle."""
        paths = health_factor_paths(self._bob(), {"WETH": np.full((1, 2), 0.8)})
        self.assertAlmostEqual(float(paths[0, 1]), 0.825 * 0.8 / 0.74, places=6)

        oracle = shocked_oracle(self.pool.oracle, ["WETH"], 0.8)
        pool_hf = self.pool.get_user_account_data("bob", oracle=oracle).health_factor / WAD
        self.assertAlmostEqual(float(paths[0, 1]), pool_hf, places=6)

    def test_account_without_debt_has_infinite_health_factor(self) -> None:
        """Depositors without debt can never be liquidated."""
        alice = collect_exposures(self.pool, ["alice"])[0]
        paths = health_factor_paths(alice, {"WETH": np.full((3, 4), 0.1)})
        self.assertTrue(np.all(np.isinf(paths)))

    def test_run_stress_test_rows(self) -> None:
        """Every account should get one row per simulated path."""
        config = SimulationConfig(n_simulations=200, n_steps=10)
        results = run_stress_test(self.pool, ["WETH"], config=config, seed=11)
        self.assertEqual(list(results.columns), RESULT_COLUMNS)
        self.assertEqual(len(results), 400)
        self.assertEqual(set(results["user"]), {"alice", "bob"})
        self.assertFalse(results[results["user"] == "alice"]["liquidated"].any())

    def test_high_volatility_liquidates_borrower(self) -> None:
        """Extreme volatility should liquidate the borrower on most paths."""
        config = SimulationConfig(n_simulations=200, n_steps=30, annual_volatility=5.0)
        results = run_stress_test(self.pool, ["WETH"], config=config, seed=5)
        summary = summarize_stress_results(results, self.pool)

        self.assertEqual(list(summary.columns), SUMMARY_COLUMNS)
        bob = summary.iloc[0]
        self.assertEqual(bob["user"], "bob")
        self.assertGreater(bob["liquidation_probability"], 0.5)
        self.assertAlmostEqual(bob["current_health_factor"], 0.825 / 0.74, places=6)

    def test_stress_does_not_touch_pool(self) -> None:
        """Stress testing should leave reserves and events unchanged."""
        reserve_state = self.pool.get_reserve("WETH").snapshot()
        events = len(self.pool.events)
        run_stress_test(self.pool, ["WETH", "DAI"], SimulationConfig(n_simulations=10), seed=1, correlated=False)
        self.assertEqual(self.pool.get_reserve("WETH").snapshot(), reserve_state)
        self.assertEqual(len(self.pool.events), events)

    def test_empty_inputs(self) -> None:
        """No shocked asset is an error and no accounts gives an empty frame."""
        with self.assertRaises(ValueError):
            run_stress_test(self.pool, [])
        results = run_stress_test(self.pool, ["WETH"], SimulationConfig(n_simulations=5), users=[])
        self.assertTrue(results.empty)
        self.assertTrue(summarize_stress_results(results).empty)


if __name__ == "__main__":
    unittest.main()
