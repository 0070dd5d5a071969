"""Monte Carlo stress testing of pool accounts."""

from .price_paths import SimulationConfig, deterministic_shock_path, simulate_gbm_paths
from .stress import collect_exposures, health_factor_paths, run_stress_test, shocked_oracle, summarize_stress_results

__all__ = [
    "SimulationConfig",
    "deterministic_shock_path",
    "simulate_gbm_paths",
    "collect_exposures",
    "health_factor_paths",
    "run_stress_test",
    "shocked_oracle",
    "summarize_stress_results",
]
