# Overview: Fixed-point money and quantity helpers (2-decimal, half-up rounding).

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any, default: Decimal | None = ZERO) -> Decimal:
    """
    Coerce ints, floats, strings and Decimals into a Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary expansion.
    """
    if value is None or value == "":
        if default is None:
            raise InvalidOperation("value required")
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation("booleans are not numbers")
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(str(value).strip())


def round2(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Any) -> str | None:
    """JSON representation for money columns."""
    if value is None:
        return None
    return format(round2(value), "f")


def qty_str(value: Any) -> str | None:
    if value is None:
        return None
    d = to_decimal(value).normalize()
    # normalize() turns 100 into 1E+2
    return format(d, "f")
