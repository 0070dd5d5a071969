"""Stress-test the accounts of a scenario under simulated price paths.

Usage:
    python -m lending_engine.scripts.run_stress lending_engine/scenarios/data/liquidation.yml --shock WETH
"""

import argparse
import logging
from pathlib import Path
import sys
from typing import List, Optional

from ..core.config import load_settings
from ..core.logging_config import parse_log_level, setup_logging
from ..scenarios.runner import ScenarioRunner
from ..simulation.price_paths import SimulationConfig
from ..simulation.stress import run_stress_test, summarize_stress_results


logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """Build pool state from a scenario, then simulate collateral prices."""
    parser = argparse.ArgumentParser(description="Monte Carlo health-factor stress test.")
    parser.add_argument("scenario", type=str, help="Scenario YAML file that sets up the positions.")
    parser.add_argument("--shock", action="append", default=[], help="Asset whose price is simulated; repeatable.")
    parser.add_argument("--paths", type=int, default=1000, help="Number of simulated paths.")
    parser.add_argument("--steps", type=int, default=30, help="Daily steps per path.")
    parser.add_argument("--volatility", type=float, default=0.80, help="Annualised volatility.")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed.")
    parser.add_argument("--output", type=str, default="", help="Optional CSV path for per-path results.")
    parser.add_argument("--config", type=str, default="", help="Optional engine config.yml path.")
    parser.add_argument("--log-level", type=str, default="", help="Overrides app.log_level from config.")
    args = parser.parse_args(argv)

    settings = load_settings(args.config or None)
    setup_logging(parse_log_level(args.log_level or settings.log_level))

    runner = ScenarioRunner(settings)
    report = runner.run_file(args.scenario)
    if not report.passed:
        logger.warning("Scenario %s had %d failed actions", report.title, len(report.failures))

    shocked = args.shock or ["WETH"]
    config = SimulationConfig(n_simulations=args.paths, n_steps=args.steps, annual_volatility=args.volatility)
    results = run_stress_test(runner.bundle.pool, shocked, config=config, seed=args.seed)
    summary = summarize_stress_results(results, runner.bundle.pool)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        results.to_csv(output_path, index=False)
        logger.info("Per-path results written to %s rows=%d", output_path, len(results))

    print(summary.to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
