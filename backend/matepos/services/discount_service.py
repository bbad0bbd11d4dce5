# Overview: Wholesale tier pricing and persistence of the discount schedule.

"""
Discount tiers.

unit_price() is a pure function and the single source of tiered pricing:
the cart, the wholesale price list and the HTTP cart routes all call it.
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import DiscountSettings, DISCOUNT_SETTINGS_ID, Product
from ..validation import ValidationError, parse_int
from ..values import to_money
from .errors import DiscountSettingsError


HUNDRED = Decimal("100")


def _discounted(original_price, discount_pct) -> Decimal:
    return to_money(Decimal(original_price) * (1 - Decimal(str(discount_pct)) / HUNDRED))


def unit_price(original_price, quantity: int, settings) -> Decimal:
    """
    Unit price for ``quantity`` units given the tier schedule.

    - quantity >= tier2_quantity: tier-2 discount
    - quantity >= tier1_quantity: tier-1 discount
    - otherwise: the original price

    With no settings the original price is returned; this never raises.
    """
    original = to_money(original_price)
    if settings is None:
        return original

    try:
        if quantity >= settings.tier2_quantity:
            return _discounted(original, settings.tier2_discount)
        if quantity >= settings.tier1_quantity:
            return _discounted(original, settings.tier1_discount)
    except (TypeError, AttributeError, ArithmeticError):
        return original
    return original


# =============================================================================
# SETTINGS PERSISTENCE
# =============================================================================

def get_discount_settings() -> DiscountSettings | None:
    return db.session.get(DiscountSettings, DISCOUNT_SETTINGS_ID)


def _parse_discount(value, field: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        pct = Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(f"{field} must be a number")
    if not pct.is_finite() or pct < 0 or pct > HUNDRED:
        raise ValidationError(f"{field} must be between 0 and 100")
    return pct.quantize(Decimal("0.01"))


def validate_discount_settings(tier1_quantity, tier1_discount, tier2_quantity, tier2_discount) -> dict:
    """Parse and check the tier rules. Returns normalized values."""
    values = {
        "tier1_quantity": parse_int(tier1_quantity, "tier1_quantity", minimum=1),
        "tier1_discount": _parse_discount(tier1_discount, "tier1_discount"),
        "tier2_quantity": parse_int(tier2_quantity, "tier2_quantity", minimum=1),
        "tier2_discount": _parse_discount(tier2_discount, "tier2_discount"),
    }

    if values["tier1_quantity"] >= values["tier2_quantity"]:
        raise DiscountSettingsError("Tier 2 quantity must be greater than tier 1 quantity")

    if values["tier1_discount"] >= values["tier2_discount"]:
        raise DiscountSettingsError("Tier 2 discount must be greater than tier 1 discount")

    return values


def update_discount_settings(tier1_quantity, tier1_discount, tier2_quantity, tier2_discount) -> DiscountSettings:
    """Validate then write the schedule (creates the row on first use)."""
    values = validate_discount_settings(tier1_quantity, tier1_discount, tier2_quantity, tier2_discount)

    settings = get_discount_settings()
    if settings is None:
        settings = DiscountSettings(id=DISCOUNT_SETTINGS_ID)
        db.session.add(settings)

    for key, value in values.items():
        setattr(settings, key, value)

    db.session.commit()
    return settings


# =============================================================================
# WHOLESALE PRICE LIST
# =============================================================================

def wholesale_price_list() -> list[dict]:
    """Every product with its list price and both tier prices."""
    settings = get_discount_settings()
    products = db.session.query(Product).order_by(Product.name).all()

    rows = []
    for product in products:
        row = product.to_details()
        if settings is not None:
            row.update({
                "tier1_quantity": settings.tier1_quantity,
                "tier1_discount": str(settings.tier1_discount),
                "tier1_price": str(unit_price(product.price, settings.tier1_quantity, settings)),
                "tier2_quantity": settings.tier2_quantity,
                "tier2_discount": str(settings.tier2_discount),
                "tier2_price": str(unit_price(product.price, settings.tier2_quantity, settings)),
            })
        rows.append(row)
    return rows
