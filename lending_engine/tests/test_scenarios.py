"""Integration tests for YAML scenario execution."""

from pathlib import Path
import tempfile
import unittest

from lending_engine.models.enums import ScenarioExpectation
from lending_engine.models.exceptions import InvalidConfigurationError
from lending_engine.scenarios.runner import Scenario, ScenarioRunner, list_bundled_scenarios, load_scenario
from lending_engine.scripts import run_scenario


class ScenarioRunnerTests(unittest.TestCase):
    """Validate bundled scenarios and the runner's pass/fail reporting."""

    def setUp(self) -> None:
        """Fresh runner on the bundled configuration."""
        self.runner = ScenarioRunner()

    def test_bundled_scenarios_pass(self) -> None:
        """Every packaged scenario file should pass."""
        paths = list_bundled_scenarios()
        self.assertGreaterEqual(len(paths), 6)
        for path in paths:
            with self.subTest(scenario=path.name):
                report = self.runner.run_file(path)
                self.assertTrue(report.passed, report.to_dict())

    def test_unexpected_success_is_a_failure(self) -> None:
        """An action expected to revert that succeeds should be reported."""
        scenario = Scenario.model_validate(
            {
                "title": "inline",
                "reserves": ["dai"],
                "stories": [
                    {
                        "description": "mint only",
                        "actions": [
                            {"name": "mint", "args": {"reserve": "DAI", "user": "alice", "amount": "1"}},
                            {
                                "name": "deposit",
                                "args": {"reserve": "DAI", "user": "alice", "amount": "1"},
                                "expected": "revert",
                            },
                        ],
                    }
                ],
            }
        )
        report = self.runner.run(scenario)
        self.assertFalse(report.passed)
        self.assertEqual(len(report.failures), 1)
        self.assertEqual(report.failures[0].expected, ScenarioExpectation.REVERT)
        self.assertIn("success", report.failures[0].message)

    def test_wrong_revert_error_is_a_failure(self) -> None:
        """A revert with a different error class than declared should be reported."""
        scenario = Scenario.model_validate(
            {
                "title": "inline",
                "reserves": ["DAI"],
                "stories": [
                    {
                        "actions": [
                            {
                                "name": "withdraw",
                                "args": {"reserve": "DAI", "user": "alice", "amount": "1"},
                                "expected": "revert",
                                "revert_error": "ReserveFrozenError",
                            }
                        ]
                    }
                ],
            }
        )
        report = self.runner.run(scenario)
        self.assertEqual(report.failures[0].error, "NotEnoughAvailableUserBalanceError")

    def test_unknown_action(self) -> None:
        """Unknown action names should fail without raising."""
        scenario = Scenario.model_validate(
            {"title": "inline", "stories": [{"actions": [{"name": "teleport"}]}]}
        )
        report = self.runner.run(scenario)
        self.assertEqual(report.failures[0].message, "Unknown action")

    def test_invalid_file(self) -> None:
        """Files that are not scenarios should raise a configuration error."""
        directory = tempfile.TemporaryDirectory()
        self.addCleanup(directory.cleanup)
        path = Path(directory.name) / "broken.yml"
        path.write_text("stories: []\n", encoding="utf-8")
        with self.assertRaises(InvalidConfigurationError):
            load_scenario(path)

    def test_script_runs_bundled_scenarios(self) -> None:
        """The command-line entry point should exit cleanly when every scenario passes."""
        self.assertEqual(run_scenario.main(["--log-level", "WARNING"]), 0)


if __name__ == "__main__":
    unittest.main()
