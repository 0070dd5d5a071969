"""Unit tests for YAML configuration loading."""

import logging
from pathlib import Path
import tempfile
import unittest

from lending_engine.common.protocol_constants import DEFAULT_LIQUIDATION_CLOSE_FACTOR_BPS, RAY
from lending_engine.core.config import load_settings
from lending_engine.core.logging_config import parse_log_level


class LoadSettingsTests(unittest.TestCase):
    """Validate bundled values and fallbacks of the settings loader."""

    def _write(self, text: str) -> Path:
        directory = tempfile.TemporaryDirectory()
        self.addCleanup(directory.cleanup)
        path = Path(directory.name) / "config.yml"
        path.write_text(text, encoding="utf-8")
        return path

    def test_bundled_configuration(self) -> None:
        """The packaged config.yml should load the pool policy and reserves."""
        settings = load_settings()
        self.assertEqual(settings.pool.treasury, "treasury")
        self.assertEqual(settings.pool.flash_loan_premium_total_bps, 9)
        self.assertEqual(settings.pool.flash_loan_premium_to_protocol_bps, 3_000)
        self.assertEqual(settings.pool.rebalance_up_usage_ratio_threshold, 95 * RAY // 100)
        self.assertEqual(set(settings.reserves), {"DAI", "USDC", "WETH", "STETH"})
        self.assertEqual(settings.prices["WETH"], 10**18)

    def test_out_of_range_bps_falls_back(self) -> None:
        """Invalid basis points should be replaced by defaults."""
        path = self._write("pool:\n  liquidation_close_factor_bps: 20000\n  treasury: vault\n")
        settings = load_settings(path)
        self.assertEqual(settings.pool.liquidation_close_factor_bps, DEFAULT_LIQUIDATION_CLOSE_FACTOR_BPS)
        self.assertEqual(settings.pool.treasury, "vault")

    def test_non_numeric_values_fall_back(self) -> None:
        """Unparseable numbers should be replaced by defaults."""
        path = self._write("pool:\n  flash_loan_premium_total_bps: nine\nprices:\n  dai: lots\n")
        settings = load_settings(path)
        self.assertEqual(settings.pool.flash_loan_premium_total_bps, 9)
        self.assertEqual(settings.prices["DAI"], 0)

    def test_missing_file_uses_defaults(self) -> None:
        """A missing file should give default settings."""
        settings = load_settings(Path(tempfile.gettempdir()) / "does-not-exist" / "config.yml")
        self.assertEqual(settings.reserves, {})
        self.assertEqual(settings.pool.liquidation_close_factor_bps, DEFAULT_LIQUIDATION_CLOSE_FACTOR_BPS)


class LogLevelTests(unittest.TestCase):
    """Validate log level parsing."""

    def test_known_and_unknown_levels(self) -> None:
        """Known names map to levels and unknown names fall back."""
        self.assertEqual(parse_log_level("debug"), logging.DEBUG)
        self.assertEqual(parse_log_level("nonsense", logging.ERROR), logging.ERROR)


if __name__ == "__main__":
    unittest.main()
