"""Central logging configuration for the lending engine."""

import logging


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: int = logging.INFO) -> None:
    """Configure the root logger once for consistent engine logs."""
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)


def get_logger(name: str) -> logging.Logger:
    """Create or retrieve a module logger."""
    return logging.getLogger(name)


def parse_log_level(value: str, default: int = logging.INFO) -> int:
    """Translate a level name such as ``"DEBUG"`` into its numeric value."""
    level = logging.getLevelName(str(value).strip().upper())
    if isinstance(level, int):
        return level
    logging.getLogger(__name__).warning("Unknown log level '%s'. Using default=%s", value, default)
    return default
