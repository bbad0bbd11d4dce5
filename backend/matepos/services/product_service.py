# Overview: Product catalog read side (product + category projection) and cart pricing.

from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..validation import ValidationError
from .cart_service import Cart, LineItem
from .discount_service import get_discount_settings, unit_price
from .errors import ProductNotFound


def get_products(category_id: int | None = None) -> list[dict]:
    query = db.session.query(Product)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    return [p.to_details() for p in query.order_by(Product.name, Product.id).all()]


def get_product(product_id: int) -> dict:
    return _load_product(product_id).to_details()


def _load_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(f"Product {product_id} not found")
    return product


def _check_stock(product: Product, quantity: int) -> None:
    if quantity > (product.stock or 0):
        raise ValidationError(f"Only {product.stock} units of {product.name} in stock")


def add_product_to_cart(cart: Cart, product_id: int, quantity: int = 1) -> LineItem:
    """
    Add ``quantity`` units, repricing the line for its resulting quantity.

    Stock is checked against the resulting quantity but not reserved.
    """
    if quantity <= 0:
        raise ValidationError("quantity must be greater than 0")
    product = _load_product(product_id)

    existing = cart.get(product.id)
    new_quantity = quantity + (existing.quantity if existing else 0)
    _check_stock(product, new_quantity)

    price = unit_price(product.price, new_quantity, get_discount_settings())
    return cart.add(
        product.id,
        product.name,
        price,
        quantity=quantity,
        original_unit_price=product.price,
    )


def set_cart_quantity(cart: Cart, product_id: int, quantity: int) -> bool:
    if cart.get(product_id) is None:
        return False
    if quantity <= 0:
        return cart.set_quantity(product_id, quantity)

    product = _load_product(product_id)
    _check_stock(product, quantity)
    price = unit_price(product.price, quantity, get_discount_settings())
    return cart.set_quantity(product_id, quantity, new_unit_price=price)
