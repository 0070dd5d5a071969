"""Configuration loading utilities for YAML-based engine settings."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..common.protocol_constants import (
    DEFAULT_FLASH_LOAN_PREMIUM_TO_PROTOCOL_BPS,
    DEFAULT_FLASH_LOAN_PREMIUM_TOTAL_BPS,
    DEFAULT_LIQUIDATION_CLOSE_FACTOR_BPS,
    DEFAULT_MAX_STABLE_LOAN_PERCENT_BPS,
    DEFAULT_REBALANCE_UP_LIQUIDITY_RATE_THRESHOLD_BPS,
    DEFAULT_REBALANCE_UP_USAGE_RATIO_THRESHOLD,
    DEFAULT_TREASURY,
)
from ..common.wad_ray_math import to_ray
from .logging_config import get_logger


logger = get_logger(__name__)
_BASE_DIR = Path(__file__).resolve().parent.parent
_CONFIG_PATH = _BASE_DIR / "config.yml"

PathLike = Union[str, Path]


@dataclass(frozen=True)
class PoolSettings:
    """Policy parameters of the lending pool."""

    treasury: str = DEFAULT_TREASURY
    flash_loan_premium_total_bps: int = DEFAULT_FLASH_LOAN_PREMIUM_TOTAL_BPS
    flash_loan_premium_to_protocol_bps: int = DEFAULT_FLASH_LOAN_PREMIUM_TO_PROTOCOL_BPS
    liquidation_close_factor_bps: int = DEFAULT_LIQUIDATION_CLOSE_FACTOR_BPS
    max_stable_loan_percent_bps: int = DEFAULT_MAX_STABLE_LOAN_PERCENT_BPS
    rebalance_up_usage_ratio_threshold: int = DEFAULT_REBALANCE_UP_USAGE_RATIO_THRESHOLD
    rebalance_up_liquidity_rate_threshold_bps: int = DEFAULT_REBALANCE_UP_LIQUIDITY_RATE_THRESHOLD_BPS
    oracle_max_age_sec: int = 0


@dataclass(frozen=True)
class EngineSettings:
    """Engine settings loaded from YAML configuration file."""

    app_name: str = "Reserve Accounting Engine"
    log_level: str = "INFO"
    pool: PoolSettings = field(default_factory=PoolSettings)
    reserves: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    prices: Dict[str, int] = field(default_factory=dict)


def _to_int(value: Any, default: int) -> int:
    """Convert value to int with a default fallback."""
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer value '%s'. Using default=%s", value, default)
        return default


def _to_bps(value: Any, default: int) -> int:
    """Convert a basis-point value and keep it within 0..10000."""
    parsed = _to_int(value, default)
    if not 0 <= parsed <= 10_000:
        logger.warning("Basis points out of range '%s'. Using default=%s", value, default)
        return default
    return parsed


def _to_ray(value: Any, default: int) -> int:
    """Convert a human rate such as ``0.95`` to ray with a default fallback."""
    if value is None:
        return default
    try:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return to_ray(value)
    except Exception:
        logger.warning("Invalid rate value '%s'. Using default=%s", value, default)
        return default


def _read_config(path: Optional[PathLike] = None) -> dict:
    """Read and parse YAML configuration."""
    config_path = Path(path) if path is not None else _CONFIG_PATH
    try:
        with config_path.open("r", encoding="utf-8") as config_file:
            config_data = yaml.safe_load(config_file) or {}
        logger.info("Configuration loaded from %s", config_path)
        return config_data
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Falling back to defaults.", config_path)
        return {}
    except yaml.YAMLError:
        logger.exception("Failed to parse config file at %s", config_path)
        return {}


def build_pool_settings(pool_cfg: Dict[str, Any]) -> PoolSettings:
    """Coerce a raw ``pool`` config section into :class:`PoolSettings`."""
    return PoolSettings(
        treasury=str(pool_cfg.get("treasury", DEFAULT_TREASURY)),
        flash_loan_premium_total_bps=_to_bps(
            pool_cfg.get("flash_loan_premium_total_bps", DEFAULT_FLASH_LOAN_PREMIUM_TOTAL_BPS),
            DEFAULT_FLASH_LOAN_PREMIUM_TOTAL_BPS,
        ),
        flash_loan_premium_to_protocol_bps=_to_bps(
            pool_cfg.get("flash_loan_premium_to_protocol_bps", DEFAULT_FLASH_LOAN_PREMIUM_TO_PROTOCOL_BPS),
            DEFAULT_FLASH_LOAN_PREMIUM_TO_PROTOCOL_BPS,
        ),
        liquidation_close_factor_bps=_to_bps(
            pool_cfg.get("liquidation_close_factor_bps", DEFAULT_LIQUIDATION_CLOSE_FACTOR_BPS),
            DEFAULT_LIQUIDATION_CLOSE_FACTOR_BPS,
        ),
        max_stable_loan_percent_bps=_to_bps(
            pool_cfg.get("max_stable_loan_percent_bps", DEFAULT_MAX_STABLE_LOAN_PERCENT_BPS),
            DEFAULT_MAX_STABLE_LOAN_PERCENT_BPS,
        ),
        rebalance_up_usage_ratio_threshold=_to_ray(
            pool_cfg.get("rebalance_up_usage_ratio_threshold"),
            DEFAULT_REBALANCE_UP_USAGE_RATIO_THRESHOLD,
        ),
        rebalance_up_liquidity_rate_threshold_bps=_to_bps(
            pool_cfg.get(
                "rebalance_up_liquidity_rate_threshold_bps",
                DEFAULT_REBALANCE_UP_LIQUIDITY_RATE_THRESHOLD_BPS,
            ),
            DEFAULT_REBALANCE_UP_LIQUIDITY_RATE_THRESHOLD_BPS,
        ),
        oracle_max_age_sec=max(0, _to_int(pool_cfg.get("oracle_max_age_sec", 0), 0)),
    )


def load_settings(path: Optional[PathLike] = None) -> EngineSettings:
    """Load engine settings from `config.yml` or the given path."""
    config = _read_config(path)
    app_cfg = config.get("app", {}) or {}
    pool_cfg = config.get("pool", {}) or {}
    reserves_cfg = config.get("reserves", {}) or {}
    prices_cfg = config.get("prices", {}) or {}

    if not isinstance(reserves_cfg, dict):
        logger.warning("Reserves section must be a mapping. Ignoring value of type %s", type(reserves_cfg))
        reserves_cfg = {}

    return EngineSettings(
        app_name=str(app_cfg.get("name", "Reserve Accounting Engine")),
        log_level=str(app_cfg.get("log_level", "INFO")),
        pool=build_pool_settings(pool_cfg),
        reserves={str(symbol).upper(): dict(values or {}) for symbol, values in reserves_cfg.items()},
        prices={str(symbol).upper(): _to_int(value, 0) for symbol, value in dict(prices_cfg).items()},
    )
