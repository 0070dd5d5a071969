"""Scenario files and their runner."""

from .runner import ActionResult, Scenario, ScenarioReport, ScenarioRunner, list_bundled_scenarios, load_scenario

__all__ = [
    "ActionResult",
    "Scenario",
    "ScenarioReport",
    "ScenarioRunner",
    "list_bundled_scenarios",
    "load_scenario",
]
