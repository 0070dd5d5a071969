"""Run YAML scenario files against an in-memory pool.

Usage:
    python -m lending_engine.scripts.run_scenario                 (all bundled scenarios)
    python -m lending_engine.scripts.run_scenario path/to/file.yml
"""

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import List, Optional

from ..core.config import load_settings
from ..core.logging_config import parse_log_level, setup_logging
from ..scenarios.runner import ScenarioRunner, list_bundled_scenarios


logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """Run scenarios and return a non-zero exit code on any failed action."""
    parser = argparse.ArgumentParser(description="Execute lending pool scenario files.")
    parser.add_argument("paths", nargs="*", help="Scenario YAML files; bundled scenarios when omitted.")
    parser.add_argument("--config", type=str, default="", help="Optional engine config.yml path.")
    parser.add_argument("--log-level", type=str, default="", help="Overrides app.log_level from config.")
    parser.add_argument("--json", action="store_true", help="Print reports as JSON.")
    args = parser.parse_args(argv)

    settings = load_settings(args.config or None)
    setup_logging(parse_log_level(args.log_level or settings.log_level))

    paths = [Path(path) for path in args.paths] or list_bundled_scenarios()
    runner = ScenarioRunner(settings)
    failed = 0
    for path in paths:
        report = runner.run_file(path)
        if not report.passed:
            failed += 1
        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            logger.info(
                "%s %s (%d actions, %d failures)",
                "PASS" if report.passed else "FAIL",
                report.title,
                len(report.results),
                len(report.failures),
            )
            for failure in report.failures:
                logger.info("  story=%r action=%s #%d: %s", failure.story, failure.name, failure.index, failure.message)

    logger.info("Scenario files run=%d failed=%d", len(paths), failed)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
