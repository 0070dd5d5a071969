"""Interest accumulation formulas built on the wad/ray primitives."""

from __future__ import annotations

from ..models.exceptions import MathOverflowError
from .protocol_constants import RAY, SECONDS_PER_YEAR
from .wad_ray_math import checked_add, ray_mul


def calculate_linear_interest(rate: int, last_update_timestamp: int, current_timestamp: int) -> int:
    """Return the simple-interest growth factor (ray) between two timestamps.

    ``RAY + rate * elapsed / SECONDS_PER_YEAR``
    """
    if current_timestamp < last_update_timestamp:
        raise MathOverflowError("Timestamp moved backwards")
    time_difference = current_timestamp - last_update_timestamp
    return checked_add(rate * time_difference // SECONDS_PER_YEAR, RAY)


def calculate_compounded_interest(rate: int, last_update_timestamp: int, current_timestamp: int) -> int:
    """Approximate ``(1 + rate / SECONDS_PER_YEAR) ** elapsed`` in ray.

    Uses the first three terms of the binomial expansion, rounding every
    term down exactly like the on-chain implementation::

        1 + n*x + n*(n-1)/2 * x**2 + n*(n-1)*(n-2)/6 * x**3

    Args:
        rate: Annual rate in ray.
        last_update_timestamp: Start of the accrual window (seconds).
        current_timestamp: End of the accrual window (seconds).

    Returns:
        int: Growth factor in ray; ``RAY`` when no time elapsed.
    """
    if current_timestamp < last_update_timestamp:
        raise MathOverflowError("Timestamp moved backwards")
    exp = current_timestamp - last_update_timestamp
    if exp == 0:
        return RAY

    exp_minus_one = exp - 1
    exp_minus_two = exp - 2 if exp > 2 else 0

    rate_per_second = rate // SECONDS_PER_YEAR

    base_power_two = ray_mul(rate_per_second, rate_per_second)
    base_power_three = ray_mul(base_power_two, rate_per_second)

    second_term = exp * exp_minus_one * base_power_two // 2
    third_term = exp * exp_minus_one * exp_minus_two * base_power_three // 6

    result = RAY + rate_per_second * exp
    result = checked_add(result, second_term)
    return checked_add(result, third_term)
