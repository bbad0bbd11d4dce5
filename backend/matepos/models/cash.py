from __future__ import annotations

from ..extensions import db
from ..values import money_str, to_utc_z, utcnow


class _CashMovement:
    """
    Shared columns of manual cash drawer movements.

    IMMUTABLE: movements are appended, never updated or deleted. Corrections
    are made with an opposite movement.
    """

    id = db.Column(db.Integer, primary_key=True)
    payment_method = db.Column(db.String(32), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    created_by = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_method": self.payment_method,
            "amount": money_str(self.amount),
            "description": self.description,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class CashWithdrawal(_CashMovement, db.Model):
    """Money taken out of the drawer for a payment method (reduces availability)."""
    __tablename__ = "cash_withdrawals"
    __table_args__ = {"sqlite_autoincrement": True}


class CashIncome(_CashMovement, db.Model):
    """Money put into the drawer outside of a sale (increases availability)."""
    __tablename__ = "cash_incomes"
    __table_args__ = {"sqlite_autoincrement": True}
