from __future__ import annotations

from ..extensions import db
from ..values import money_str, to_utc_z, utcnow


SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_CANCELLED = "cancelled"


class Sale(db.Model):
    """
    Sale header registered from the admin register.

    PAYMENT: payment_method holds the method codes joined by commas, in the
    same order as payment_splits ([{"method": code, "amount": "12.50"}, ...]).
    Index i of one always describes index i of the other.

    LIFECYCLE:
    - completed: counted by the cash ledger
    - cancelled: kept for history, excluded from every ledger total

    Sales are never physically deleted.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Identity of the operator, as issued by the auth provider
    user_id = db.Column(db.String(64), nullable=False, index=True)

    payment_method = db.Column(db.String(255), nullable=False)
    payment_splits = db.Column(db.JSON, nullable=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "SaleItem",
        backref=db.backref("sale", lazy=True),
        lazy="selectin",
        order_by="SaleItem.id",
    )

    @property
    def method_codes(self) -> list[str]:
        return [code.strip() for code in (self.payment_method or "").split(",") if code.strip()]

    def payment_summaries(self, method_names: dict[str, str] | None = None) -> list[dict]:
        """One entry per method code with its catalog name and aligned split amount."""
        names = method_names or {}
        splits = self.payment_splits or []
        summaries = []
        for idx, code in enumerate(self.method_codes):
            split = splits[idx] if idx < len(splits) else None
            summaries.append({
                "method": code,
                "name": names.get(code, code),
                "amount": split.get("amount") if split else None,
            })
        return summaries

    def to_dict(self, method_names: dict[str, str] | None = None, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "payment_method": self.payment_method,
            "payment_splits": list(self.payment_splits or []),
            "payment_summaries": self.payment_summaries(method_names),
            "total_amount": money_str(self.total_amount),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Line of a sale.

    IMMUTABLE: written once together with its header. product_name is a
    snapshot taken at sale time so history survives product renames/deletes.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    original_price = db.Column(db.Numeric(12, 2), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "original_price": money_str(self.original_price),
            "product_name": self.product_name,
            "created_at": to_utc_z(self.created_at),
        }
