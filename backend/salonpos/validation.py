from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from salonpos.errors import ValidationError


# Maximum amount: 9,999,999,999.99 fits Numeric(12, 2)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT = Decimal("9999999999.99")

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(value: Decimal) -> Decimal:
    """Currency minor-unit rounding, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str, *, default: Decimal | None = None) -> Decimal:
    """
    Coerce user/JSON input into a Decimal.

    Floats go through str() so 0.1 stays 0.1. Booleans are rejected even
    though they are ints.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds the maximum allowed amount")
    return result


def to_money(value: Any, field: str, *, default: Decimal | None = None, allow_negative: bool = False) -> Decimal:
    amount = to_decimal(value, field, default=default)
    if not allow_negative and amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return round_money(amount)


def to_percentage(value: Any, field: str, *, default: Decimal | None = None) -> Decimal:
    """Percentage in [0, 100] at the stored precision (two places, half-up)."""
    pct = to_decimal(value, field, default=default)
    if pct < 0 or pct > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    return pct.quantize(CENT, rounding=ROUND_HALF_UP)


def to_quantity(value: Any, field: str = "quantity") -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        value = int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be an integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 1:
        raise ValidationError(f"{field} must be at least 1")
    return value


def require_text(value: Any, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def money_to_json(value: Decimal | None) -> float | None:
    """Plain JSON number for persisted/serialized amounts."""
    if value is None:
        return None
    return float(round_money(value))
