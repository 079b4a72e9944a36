from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from retailpos.money import to_decimal
from retailpos.time_utils import parse_iso_date


# Largest amount a Numeric(14, 2) column holds comfortably
MAX_AMOUNT = Decimal("999999999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level missing entity."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate barcode, role in use)."""


def require_text(data: dict, field: str, *, label: str | None = None, min_length: int = 1) -> str:
    value = data.get(field)
    label = label or field
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    value = value.strip()
    if len(value) < min_length:
        raise ValidationError(f"{label} must be at least {min_length} characters")
    return value


def optional_text(data: dict, field: str) -> str | None:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    return value or None


def parse_amount(value: Any, field: str, *, required: bool = False, allow_zero: bool = True) -> Decimal:
    """Parse a non-negative money/quantity value."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return Decimal("0")
    try:
        amount = to_decimal(value, default=None)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    if not allow_zero and amount == 0:
        raise ValidationError(f"{field} must be greater than zero")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    return amount


def parse_positive(value: Any, field: str) -> Decimal:
    return parse_amount(value, field, required=True, allow_zero=False)


def parse_int_id(value: Any, field: str, *, required: bool = True) -> int | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def parse_choice(value: Any, field: str, choices: Iterable[str], *, default: str | None = None) -> str:
    choices = tuple(choices)
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} is required")
    if not isinstance(value, str) or value.upper() not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value.upper()


def parse_date_arg(value: Any, field: str):
    if value in (None, ""):
        return None
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")
