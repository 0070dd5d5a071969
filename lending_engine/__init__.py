"""Reserve accounting engine for an over-collateralized lending pool."""

__version__ = "0.1.0"
