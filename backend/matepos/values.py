"""
Value helpers shared by models, services and routes.

Money is always a Decimal quantized to cents. It travels through JSON as a
string so float rounding never leaks into totals.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")

# Two amounts closer than this are considered reconciled.
MONEY_EPSILON = Decimal("0.01")

ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Coerce a number (or numeric string) to a cent-quantized Decimal."""
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        # str() first so 0.1 stays 0.1 instead of its binary expansion
        amount = Decimal(str(value))
    else:
        amount = Decimal(value)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(to_money(value))


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 with a trailing 'Z' (naive means UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
