"""YAML-driven scenario execution against an in-memory pool.

A scenario file holds stories; each story is a list of actions run in order
on the same pool. Every action declares whether it should succeed or revert,
optionally naming the exception class expected on revert. Amounts are human
decimals in the reserve's units, ``"-1"`` stands for "all".
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import Field, ValidationError, field_validator
import yaml

from ..common.protocol_constants import MAX_UINT256
from ..common.wad_ray_math import to_fixed_point
from ..core.clock import ManualClock
from ..core.config import EngineSettings, load_settings
from ..models.base import EngineModel
from ..models.enums import InterestRateMode, ScenarioExpectation
from ..models.exceptions import InvalidConfigurationError, ProtocolError
from ..services.pool_factory import PoolBundle, build_pool_from_settings


logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"

_RATE_MODES = {
    "none": InterestRateMode.NONE,
    "stable": InterestRateMode.STABLE,
    "variable": InterestRateMode.VARIABLE,
}


class ScenarioAction(EngineModel):
    """One step of a story."""

    name: str = Field(..., min_length=1)
    args: Dict[str, Any] = Field(default_factory=dict)
    expected: ScenarioExpectation = Field(default=ScenarioExpectation.SUCCESS)
    revert_error: Optional[str] = Field(default=None)


class ScenarioStory(EngineModel):
    description: str = Field(default="")
    actions: List[ScenarioAction] = Field(default_factory=list)


class Scenario(EngineModel):
    """Parsed scenario file."""

    title: str = Field(..., min_length=1)
    description: str = Field(default="")
    reserves: Optional[List[str]] = Field(default=None)
    prices: Dict[str, int] = Field(default_factory=dict)
    stories: List[ScenarioStory] = Field(default_factory=list)

    @field_validator("reserves", mode="before")
    @classmethod
    def _upper_reserves(cls, value: Any) -> Any:
        if value is None:
            return None
        return [str(asset).strip().upper() for asset in value]


@dataclass(frozen=True)
class ActionResult:
    story: str
    index: int
    name: str
    expected: ScenarioExpectation
    passed: bool
    error: Optional[str] = None
    message: str = ""


@dataclass
class ScenarioReport:
    """Outcome of every action of one scenario file."""

    title: str
    results: List[ActionResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def failures(self) -> List[ActionResult]:
        return [result for result in self.results if not result.passed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "passed": self.passed,
            "actions": len(self.results),
            "failures": [
                {
                    "story": failure.story,
                    "index": failure.index,
                    "name": failure.name,
                    "error": failure.error,
                    "message": failure.message,
                }
                for failure in self.failures
            ],
        }


class ScenarioCheckError(AssertionError):
    """A post-action balance check did not hold."""


def load_scenario(path: Union[str, Path]) -> Scenario:
    """Parse and validate a scenario file.

    Raises:
        InvalidConfigurationError: If the file is not a valid scenario.
    """
    scenario_path = Path(path)
    try:
        with scenario_path.open("r", encoding="utf-8") as scenario_file:
            raw = yaml.safe_load(scenario_file) or {}
        return Scenario.model_validate(raw)
    except (OSError, yaml.YAMLError, ValidationError) as exc:
        logger.exception("Failed to load scenario path=%s", scenario_path)
        raise InvalidConfigurationError("Invalid scenario file {0}: {1}".format(scenario_path, exc)) from exc


def list_bundled_scenarios() -> List[Path]:
    return sorted(DATA_DIR.glob("*.yml"))


class ScenarioRunner:
    """Executes scenario actions on a fresh pool per scenario."""

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self._settings = settings or load_settings()
        self._bundle: Optional[PoolBundle] = None
        self._actions: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "mint": self._mint,
            "approve_delegation": self._approve_delegation,
            "deposit": self._deposit,
            "withdraw": self._withdraw,
            "borrow": self._borrow,
            "repay": self._repay,
            "set_use_as_collateral": self._set_use_as_collateral,
            "swap_rate_mode": self._swap_rate_mode,
            "rebalance_stable_rate": self._rebalance_stable_rate,
            "set_price": self._set_price,
            "advance_time": self._advance_time,
            "liquidation_call": self._liquidation_call,
            "transfer": self._transfer,
            "rebase": self._rebase,
            "check": self._check,
        }

    @property
    def bundle(self) -> PoolBundle:
        if self._bundle is None:
            raise InvalidConfigurationError("No scenario is running")
        return self._bundle

    # ------------------------------------------------------------------
    # Argument helpers
    # ------------------------------------------------------------------

    def _amount(self, asset: str, value: Any) -> int:
        if str(value).strip() in ("-1", "max", "MAX"):
            return MAX_UINT256
        decimals = self.bundle.pool.get_reserve(asset).configuration.decimals
        return to_fixed_point(value, 10**decimals)

    @staticmethod
    def _asset(args: Dict[str, Any], key: str = "reserve") -> str:
        return str(args[key]).strip().upper()

    @staticmethod
    def _rate_mode(value: Any) -> InterestRateMode:
        if isinstance(value, int):
            return InterestRateMode(value)
        return _RATE_MODES[str(value).strip().lower()]

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _mint(self, args: Dict[str, Any]) -> None:
        asset = self._asset(args)
        self.bundle.ledgers[asset].mint(args["user"], self._amount(asset, args["amount"]))

    def _approve_delegation(self, args: Dict[str, Any]) -> None:
        asset = self._asset(args)
        self.bundle.pool.approve_delegation(
            args["user"],
            asset,
            args["delegatee"],
            self._amount(asset, args["amount"]),
            self._rate_mode(args.get("rate_mode", "variable")),
        )

    def _deposit(self, args: Dict[str, Any]) -> None:
        asset = self._asset(args)
        self.bundle.pool.deposit(args["user"], asset, self._amount(asset, args["amount"]), args.get("on_behalf_of"))

    def _withdraw(self, args: Dict[str, Any]) -> None:
        asset = self._asset(args)
        self.bundle.pool.withdraw(args["user"], asset, self._amount(asset, args["amount"]), args.get("to"))

    def _borrow(self, args: Dict[str, Any]) -> None:
        asset = self._asset(args)
        self.bundle.pool.borrow(
            args["user"],
            asset,
            self._amount(asset, args["amount"]),
            self._rate_mode(args.get("rate_mode", "variable")),
            args.get("on_behalf_of"),
        )

    def _repay(self, args: Dict[str, Any]) -> None:
        asset = self._asset(args)
        self.bundle.pool.repay(
            args["user"],
            asset,
            self._amount(asset, args["amount"]),
            self._rate_mode(args.get("rate_mode", "variable")),
            args.get("on_behalf_of"),
        )

    def _set_use_as_collateral(self, args: Dict[str, Any]) -> None:
        self.bundle.pool.set_user_use_reserve_as_collateral(
            args["user"], self._asset(args), bool(args.get("use_as_collateral", True))
        )

    def _swap_rate_mode(self, args: Dict[str, Any]) -> None:
        self.bundle.pool.swap_borrow_rate_mode(args["user"], self._asset(args), self._rate_mode(args["rate_mode"]))

    def _rebalance_stable_rate(self, args: Dict[str, Any]) -> None:
        self.bundle.pool.rebalance_stable_borrow_rate(args["user"], self._asset(args), args["target"])

    def _set_price(self, args: Dict[str, Any]) -> None:
        self.bundle.oracle.set_asset_price(self._asset(args), int(args["price"]))

    def _advance_time(self, args: Dict[str, Any]) -> None:
        clock = self.bundle.clock
        if not isinstance(clock, ManualClock):
            raise InvalidConfigurationError("advance_time requires a manual clock")
        clock.advance(int(args["seconds"]))

    def _liquidation_call(self, args: Dict[str, Any]) -> None:
        debt_asset = self._asset(args, "debt_reserve")
        self.bundle.pool.liquidation_call(
            args["user"],
            self._asset(args, "collateral_reserve"),
            debt_asset,
            args["target"],
            self._amount(debt_asset, args["amount"]),
            bool(args.get("receive_deposit_token", False)),
        )

    def _transfer(self, args: Dict[str, Any]) -> None:
        asset = self._asset(args)
        self.bundle.pool.transfer_deposit_token(
            args["user"], asset, args["recipient"], self._amount(asset, args["amount"])
        )

    def _rebase(self, args: Dict[str, Any]) -> None:
        asset = self._asset(args)
        ledger = self.bundle.ledgers[asset]
        if not hasattr(ledger, "rebase"):
            raise InvalidConfigurationError("Ledger of {0} does not rebase".format(asset))
        ledger.rebase(args["rate"])
        self.bundle.pool.check_reserve_balance(asset)

    def _check(self, args: Dict[str, Any]) -> None:
        """Compare a user's position with expected human amounts."""
        asset = self._asset(args)
        data = self.bundle.pool.get_user_reserve_data(asset, args["user"])
        tolerance = int(args.get("tolerance", 2))
        observed = {
            "deposit_balance": data.current_deposit_balance,
            "variable_debt": data.current_variable_debt,
            "stable_debt": data.current_stable_debt,
            "wallet_balance": self.bundle.ledgers[asset].balance_of(args["user"]),
        }
        for key, actual in observed.items():
            if key not in args:
                continue
            expected = self._amount(asset, args[key])
            if abs(actual - expected) > tolerance:
                raise ScenarioCheckError(
                    "{0} of {1} in {2}: expected {3}, got {4}".format(key, args["user"], asset, expected, actual)
                )
        if "collateral_enabled" in args and data.usage_as_collateral_enabled != bool(args["collateral_enabled"]):
            raise ScenarioCheckError(
                "collateral flag of {0} in {1} is {2}".format(args["user"], asset, data.usage_as_collateral_enabled)
            )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _run_action(self, story: ScenarioStory, index: int, action: ScenarioAction) -> ActionResult:
        handler = self._actions.get(action.name)
        if handler is None:
            return ActionResult(
                story.description, index, action.name, action.expected, False, message="Unknown action"
            )

        error: Optional[BaseException] = None
        try:
            handler(action.args)
        except (ProtocolError, ScenarioCheckError, KeyError) as exc:
            error = exc

        error_name = type(error).__name__ if error is not None else None
        if action.expected == ScenarioExpectation.SUCCESS:
            passed = error is None
            message = "" if passed else str(error)
        else:
            passed = isinstance(error, ProtocolError) and (
                action.revert_error is None or error_name == action.revert_error
            )
            message = "" if passed else "expected revert {0}, got {1}".format(
                action.revert_error or "ProtocolError", error_name or "success"
            )

        if not passed:
            logger.warning(
                "Scenario action failed story=%r index=%s action=%s message=%s",
                story.description,
                index,
                action.name,
                message,
            )
        return ActionResult(story.description, index, action.name, action.expected, passed, error_name, message)

    def run(self, scenario: Scenario) -> ScenarioReport:
        """Run every story of ``scenario`` on a fresh pool."""
        self._bundle = build_pool_from_settings(
            self._settings,
            prices={**self._settings.prices, **{key.upper(): value for key, value in scenario.prices.items()}},
            assets=scenario.reserves,
        )
        report = ScenarioReport(title=scenario.title)
        for story in scenario.stories:
            for index, action in enumerate(story.actions):
                report.results.append(self._run_action(story, index, action))
        logger.info(
            "Scenario finished title=%s actions=%d failures=%d",
            scenario.title,
            len(report.results),
            len(report.failures),
        )
        return report

    def run_file(self, path: Union[str, Path]) -> ScenarioReport:
        return self.run(load_scenario(path))
