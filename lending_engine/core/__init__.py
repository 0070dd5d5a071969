"""Core utilities for configuration, logging and time."""

from .clock import ManualClock, SystemClock
from .config import EngineSettings, PoolSettings, load_settings
from .logging_config import get_logger, setup_logging

__all__ = [
    "EngineSettings",
    "PoolSettings",
    "load_settings",
    "ManualClock",
    "SystemClock",
    "get_logger",
    "setup_logging",
]
