"""Fixed-point math and protocol constants."""

from .math_utils import calculate_compounded_interest, calculate_linear_interest
from .protocol_constants import MAX_UINT256, PERCENTAGE_FACTOR, RAY, SECONDS_PER_YEAR, WAD
from .wad_ray_math import (
    percent_div,
    percent_mul,
    ray_div,
    ray_mul,
    ray_to_wad,
    wad_div,
    wad_mul,
    wad_to_ray,
)

__all__ = [
    "calculate_compounded_interest",
    "calculate_linear_interest",
    "MAX_UINT256",
    "PERCENTAGE_FACTOR",
    "RAY",
    "SECONDS_PER_YEAR",
    "WAD",
    "percent_div",
    "percent_mul",
    "ray_div",
    "ray_mul",
    "ray_to_wad",
    "wad_div",
    "wad_mul",
    "wad_to_ray",
]
