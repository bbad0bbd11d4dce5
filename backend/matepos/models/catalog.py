from __future__ import annotations

from ..extensions import db
from ..values import money_str, to_utc_z


class Category(db.Model):
    """Product category (yerba, mates, bombillas, ...)."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable product.

    Prices are list (retail) prices; wholesale tiers are applied at cart
    time from DiscountSettings, never stored on the product.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_created", "category_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    price = db.Column(db.Numeric(12, 2), nullable=False)
    cost = db.Column(db.Numeric(12, 2), nullable=True)
    markup_percentage = db.Column(db.Numeric(6, 2), nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    seasonal = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def to_details(self) -> dict:
        """Denormalized product + category projection (the product_details view)."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "price": money_str(self.price),
            "cost": money_str(self.cost),
            "markup_percentage": str(self.markup_percentage) if self.markup_percentage is not None else None,
            "stock": self.stock,
            "seasonal": self.seasonal,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
