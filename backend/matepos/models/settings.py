from __future__ import annotations

from ..extensions import db
from ..values import to_utc_z


DISCOUNT_SETTINGS_ID = 1


class DiscountSettings(db.Model):
    """
    Wholesale discount schedule (single row).

    Two quantity thresholds, each granting a percentage off the list price.
    Invariant (checked before every write): tier1_quantity < tier2_quantity
    and tier1_discount < tier2_discount.
    """
    __tablename__ = "discount_settings"

    id = db.Column(db.Integer, primary_key=True, default=DISCOUNT_SETTINGS_ID)

    tier1_quantity = db.Column(db.Integer, nullable=False)
    tier1_discount = db.Column(db.Numeric(5, 2), nullable=False)
    tier2_quantity = db.Column(db.Integer, nullable=False)
    tier2_discount = db.Column(db.Numeric(5, 2), nullable=False)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tier1_quantity": self.tier1_quantity,
            "tier1_discount": str(self.tier1_discount),
            "tier2_quantity": self.tier2_quantity,
            "tier2_discount": str(self.tier2_discount),
            "updated_at": to_utc_z(self.updated_at),
        }
