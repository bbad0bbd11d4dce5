from __future__ import annotations

from ..extensions import db
from ..values import to_utc_z


class PaymentMethod(db.Model):
    """
    Catalog of payment methods (efectivo, transferencia, tarjeta...).

    The code is what sales and cash movements reference, so it is lowercase
    letters only and unique. Methods are deactivated, never deleted: an
    inactive method is hidden from new sales while historical sales keep
    pointing at its code.
    """
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(128), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
