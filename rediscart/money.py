"""
Money Utilities - Decimal and integer-cent helpers for line item costs.

Stored field values arrive as strings (legacy hashes), ints or floats (JSON).
Costs are truncated to whole cents before they are multiplied or summed so
that adding many items never accumulates float error.
"""
import re
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP, InvalidOperation
from typing import Union

Number = Union[str, int, float, Decimal, None]

MONEY_PRECISION = Decimal("0.01")
CENTS_PER_UNIT = 100

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def to_decimal(value: Number) -> Decimal:
    """
    Convert any value to Decimal safely.

    Args:
        value: Value to convert (str, int, float, Decimal, or None)

    Returns:
        Decimal representation of the value, or Decimal("0") if None/invalid
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")

    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # Floats go through str() so 2.5 stays 2.5 and not its binary expansion
            result = Decimal(str(value).strip() if isinstance(value, (str, float)) else value)
        except (InvalidOperation, ValueError, TypeError):
            return Decimal("0")

    if not result.is_finite():
        return Decimal("0")
    return result


def to_cents(value: Number) -> int:
    """
    Convert an amount in major units to whole cents, truncating toward zero.

    "2.505" -> 250, "-1.999" -> -199
    """
    cents = to_decimal(value) * CENTS_PER_UNIT
    return int(cents.to_integral_value(rounding=ROUND_DOWN))


def from_cents(cents: int) -> float:
    """Convert whole cents back to a float with two-decimal precision."""
    amount = (Decimal(cents) / CENTS_PER_UNIT).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)
    return float(amount)


def to_int(value: Number) -> int:
    """
    Parse a quantity.

    Ints pass through, floats and Decimals truncate, strings use their
    leading integer ("3" -> 3, "2 boxes" -> 2). Anything else is 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        return int(to_decimal(value))

    match = _LEADING_INT.match(str(value))
    if not match:
        return 0
    return int(match.group(1))
