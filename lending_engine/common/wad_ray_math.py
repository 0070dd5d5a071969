"""Fixed-point wad/ray arithmetic with uint256 overflow emulation.

All operations round half up (add half of the divisor before dividing) and
refuse to produce or consume values outside ``[0, MAX_UINT256]``. Python
integers are arbitrary precision, so intermediate products are compared
against the same limits the 256-bit reference arithmetic would hit before
the final division.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

from ..models.exceptions import MathOverflowError
from .protocol_constants import (
    HALF_PERCENT,
    HALF_RAY,
    HALF_WAD,
    MAX_UINT256,
    PERCENTAGE_FACTOR,
    RAY,
    WAD,
    WAD_RAY_RATIO,
)


def _require_uint(*values: int) -> None:
    for value in values:
        if value < 0 or value > MAX_UINT256:
            raise MathOverflowError("Operand out of uint256 range: {0}".format(value))


def checked_add(a: int, b: int) -> int:
    _require_uint(a, b)
    result = a + b
    if result > MAX_UINT256:
        raise MathOverflowError("ADD_OVERFLOW")
    return result


def checked_sub(a: int, b: int) -> int:
    _require_uint(a, b)
    if b > a:
        raise MathOverflowError("SUB_UNDERFLOW")
    return a - b


def wad_mul(a: int, b: int) -> int:
    _require_uint(a, b)
    if a == 0 or b == 0:
        return 0
    if a > (MAX_UINT256 - HALF_WAD) // b:
        raise MathOverflowError("MUL_OVERFLOW")
    return (a * b + HALF_WAD) // WAD


def wad_div(a: int, b: int) -> int:
    _require_uint(a, b)
    if b == 0:
        raise MathOverflowError("DIVISION_BY_ZERO")
    half_b = b // 2
    if a > (MAX_UINT256 - half_b) // WAD:
        raise MathOverflowError("MUL_OVERFLOW")
    return (a * WAD + half_b) // b


def ray_mul(a: int, b: int) -> int:
    _require_uint(a, b)
    if a == 0 or b == 0:
        return 0
    if a > (MAX_UINT256 - HALF_RAY) // b:
        raise MathOverflowError("MUL_OVERFLOW")
    return (a * b + HALF_RAY) // RAY


def ray_div(a: int, b: int) -> int:
    _require_uint(a, b)
    if b == 0:
        raise MathOverflowError("DIVISION_BY_ZERO")
    half_b = b // 2
    if a > (MAX_UINT256 - half_b) // RAY:
        raise MathOverflowError("MUL_OVERFLOW")
    return (a * RAY + half_b) // b


def ray_to_wad(a: int) -> int:
    _require_uint(a)
    result = a + WAD_RAY_RATIO // 2
    if result > MAX_UINT256:
        raise MathOverflowError("ADD_OVERFLOW")
    return result // WAD_RAY_RATIO


def wad_to_ray(a: int) -> int:
    _require_uint(a)
    result = a * WAD_RAY_RATIO
    if result > MAX_UINT256:
        raise MathOverflowError("MUL_OVERFLOW")
    return result


def ray_pow(x: int, n: int) -> int:
    """Exponentiation by squaring with ray rounding at every step."""
    _require_uint(x, n)
    z = x if n % 2 != 0 else RAY
    n //= 2
    while n != 0:
        x = ray_mul(x, x)
        if n % 2 != 0:
            z = ray_mul(z, x)
        n //= 2
    return z


def percent_mul(value: int, percentage: int) -> int:
    """Multiply by a basis-point percentage (10000 == 100%)."""
    _require_uint(value, percentage)
    if value == 0 or percentage == 0:
        return 0
    if value > (MAX_UINT256 - HALF_PERCENT) // percentage:
        raise MathOverflowError("MUL_OVERFLOW")
    return (value * percentage + HALF_PERCENT) // PERCENTAGE_FACTOR


def percent_div(value: int, percentage: int) -> int:
    """Divide by a basis-point percentage (10000 == 100%)."""
    _require_uint(value, percentage)
    if percentage == 0:
        raise MathOverflowError("DIVISION_BY_ZERO")
    half_percentage = percentage // 2
    if value > (MAX_UINT256 - half_percentage) // PERCENTAGE_FACTOR:
        raise MathOverflowError("MUL_OVERFLOW")
    return (value * PERCENTAGE_FACTOR + half_percentage) // percentage


def to_fixed_point(value: Union[str, int, float, Decimal], unit: int) -> int:
    """Convert a human decimal such as ``"0.04"`` into a fixed-point integer.

    Args:
        value: Decimal string, int or float.
        unit: Fixed-point unit, e.g. ``RAY`` or ``WAD`` or ``10**decimals``.

    Returns:
        int: ``value * unit`` truncated toward zero.

    Raises:
        MathOverflowError: If the value is negative, not numeric or too large.
    """
    try:
        scaled = Decimal(str(value)) * unit
    except (InvalidOperation, ValueError) as exc:
        raise MathOverflowError("Not a number: {0!r}".format(value)) from exc
    result = int(scaled)
    _require_uint(result)
    return result


def to_ray(value: Union[str, int, float, Decimal]) -> int:
    return to_fixed_point(value, RAY)


def to_wad(value: Union[str, int, float, Decimal]) -> int:
    return to_fixed_point(value, WAD)
