"""Reusable enums for reserve accounting models."""

from enum import Enum, IntEnum


class StringEnum(str, Enum):
    """Base enum class with string behavior for YAML/JSON serialization."""


class InterestRateMode(IntEnum):
    """Borrow rate modes; values match the on-chain encoding."""

    NONE = 0
    STABLE = 1
    VARIABLE = 2


class DepositTokenKind(StringEnum):
    """Deposit token implementation selected when a reserve is listed."""

    STANDARD = "standard"
    REBASING = "rebasing"


class ScenarioExpectation(StringEnum):
    """Expected outcome of a scenario action."""

    SUCCESS = "success"
    REVERT = "revert"
