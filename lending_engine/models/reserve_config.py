"""Validated reserve risk parameters and interest rate strategy parameters."""

import logging
from typing import Any, Dict

from pydantic import Field, field_validator, model_validator

from ..common.protocol_constants import PERCENTAGE_FACTOR, RAY
from ..common.wad_ray_math import percent_mul, to_ray
from .base import EngineModel
from .enums import DepositTokenKind


logger = logging.getLogger(__name__)

_RISK_FIELDS = (
    "decimals",
    "ltv_bps",
    "liquidation_threshold_bps",
    "liquidation_bonus_bps",
    "reserve_factor_bps",
    "active",
    "frozen",
    "borrowing_enabled",
    "stable_borrow_rate_enabled",
)

_RATE_FIELDS = (
    "optimal_utilization_rate",
    "base_variable_borrow_rate",
    "variable_rate_slope1",
    "variable_rate_slope2",
    "stable_rate_slope1",
    "stable_rate_slope2",
    "base_stable_borrow_rate",
)


class InterestRateStrategyModel(EngineModel):
    """Parameters of the two-slope interest rate strategy.

    Integer inputs are taken as ray values; strings, floats and decimals are
    human rates (``"0.04"`` == 4% per year) and are converted to ray.
    """

    optimal_utilization_rate: int = Field(default=8 * RAY // 10, gt=0, le=RAY)
    base_variable_borrow_rate: int = Field(default=0, ge=0)
    variable_rate_slope1: int = Field(default=0, ge=0)
    variable_rate_slope2: int = Field(default=0, ge=0)
    stable_rate_slope1: int = Field(default=0, ge=0)
    stable_rate_slope2: int = Field(default=0, ge=0)
    base_stable_borrow_rate: int = Field(default=0, ge=0)

    @field_validator(*_RATE_FIELDS, mode="before")
    @classmethod
    def _parse_rate(cls, value: Any) -> Any:
        """Convert human-readable rates into ray integers."""
        if isinstance(value, bool):
            raise ValueError("Rate must be numeric")
        if isinstance(value, int):
            return value
        try:
            return to_ray(value)
        except Exception:
            logger.exception("Failed to parse rate value=%r", value)
            raise ValueError("Invalid rate value: {0!r}".format(value))

    @property
    def excess_utilization_rate(self) -> int:
        return RAY - self.optimal_utilization_rate


class ReserveConfigModel(EngineModel):
    """Risk parameters and status flags of one reserve."""

    decimals: int = Field(default=18, ge=0, le=36)
    ltv_bps: int = Field(default=0, ge=0, le=PERCENTAGE_FACTOR)
    liquidation_threshold_bps: int = Field(default=0, ge=0, le=PERCENTAGE_FACTOR)
    liquidation_bonus_bps: int = Field(default=0, ge=0, le=65_535)
    reserve_factor_bps: int = Field(default=0, ge=0, le=PERCENTAGE_FACTOR)
    active: bool = Field(default=True)
    frozen: bool = Field(default=False)
    borrowing_enabled: bool = Field(default=False)
    stable_borrow_rate_enabled: bool = Field(default=False)

    @model_validator(mode="after")
    def _validate_collateral_params(self) -> "ReserveConfigModel":
        """Enforce ltv <= threshold and a bonus that keeps liquidations solvent."""
        if self.ltv_bps > self.liquidation_threshold_bps:
            raise ValueError("ltv_bps cannot exceed liquidation_threshold_bps")
        if self.liquidation_threshold_bps == 0:
            if self.liquidation_bonus_bps != 0:
                raise ValueError("liquidation_bonus_bps must be 0 when collateral is disabled")
            return self
        if self.liquidation_bonus_bps <= PERCENTAGE_FACTOR:
            raise ValueError("liquidation_bonus_bps must be above 100%")
        if percent_mul(self.liquidation_threshold_bps, self.liquidation_bonus_bps) > PERCENTAGE_FACTOR:
            raise ValueError("liquidation threshold with bonus exceeds 100%")
        return self

    def with_updates(self, **changes: Any) -> "ReserveConfigModel":
        """Return a re-validated copy with the given fields replaced."""
        payload = self.model_dump()
        payload.update(changes)
        return ReserveConfigModel.model_validate(payload)

    @property
    def usable_as_collateral(self) -> bool:
        return self.liquidation_threshold_bps != 0


class ReserveListingModel(EngineModel):
    """Everything needed to initialize a reserve for one asset."""

    asset: str = Field(..., min_length=1)
    deposit_token_kind: DepositTokenKind = Field(default=DepositTokenKind.STANDARD)
    configuration: ReserveConfigModel = Field(default_factory=ReserveConfigModel)
    strategy: InterestRateStrategyModel = Field(default_factory=InterestRateStrategyModel)

    @model_validator(mode="before")
    @classmethod
    def _nest_flat_fields(cls, data: Any) -> Any:
        """Accept the flat YAML layout where risk fields sit next to ``strategy``."""
        if not isinstance(data, dict) or "configuration" in data:
            return data
        payload: Dict[str, Any] = dict(data)
        payload["configuration"] = {key: payload.pop(key) for key in _RISK_FIELDS if key in payload}
        return payload

    @field_validator("asset", mode="before")
    @classmethod
    def _normalize_asset(cls, value: Any) -> str:
        return str(value or "").strip().upper()
