from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from .values import to_money


# Maximum price / amount accepted from clients: 9,999,999.99
MAX_AMOUNT = Decimal("9999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate payment method code)."""


class NotFoundError(LookupError):
    """404-level missing entity on a point lookup."""


def parse_amount(value: Any, field: str, *, allow_zero: bool = True) -> Decimal:
    """
    Parse a client-supplied money amount.

    Accepts ints, Decimals and numeric strings; floats are accepted because
    JSON has no decimal type, and are routed through str() to avoid binary
    noise. Booleans and scientific notation are rejected.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain number (scientific notation not allowed)")
        value = stripped

    if not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError(f"{field} must be a number")

    try:
        amount = to_money(value)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if not allow_zero and amount == 0:
        raise ValidationError(f"{field} must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def parse_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """Strict integer parsing: rejects floats, decimals and booleans."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "." in stripped or "e" in stripped.lower():
            raise ValidationError(f"{field} must be an integer")
        try:
            value = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return value


def require_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    if value is None:
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field} cannot be blank")
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text
