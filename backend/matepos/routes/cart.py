# Overview: Flask API routes for the register cart; parses input and returns JSON responses.

"""
Register Cart API Routes

DESIGN:
- One cart per register (this service instance), persisted on disk.
- Prices are always computed server-side from the product list price and
  the discount tiers for the line's resulting quantity.
"""

from flask import Blueprint, jsonify, request

from ..decorators import json_errors, require_user
from ..services import product_service
from ..services.cart_service import cart_to_dict, get_cart
from ..validation import ValidationError, parse_int


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("")
@require_user
@json_errors("load cart")
def get_cart_route():
    return jsonify({"cart": cart_to_dict(get_cart())}), 200


@cart_bp.post("/items")
@require_user
@json_errors("add cart item")
def add_item_route():
    """
    Request body:
    {
        "product_id": 7,
        "quantity": 3   (optional, default 1)
    }

    Returns:
        201: Updated cart
        400: Invalid input / not enough stock
        404: Unknown product
    """
    data = request.get_json(silent=True) or {}
    product_id = parse_int(data.get("product_id"), "product_id", minimum=1)
    quantity = parse_int(data.get("quantity", 1), "quantity", minimum=1)

    cart = get_cart()
    product_service.add_product_to_cart(cart, product_id, quantity)
    return jsonify({"cart": cart_to_dict(cart)}), 201


@cart_bp.patch("/items/<int:product_id>")
@require_user
@json_errors("update cart item")
def update_item_route(product_id: int):
    """Set a line's quantity; 0 removes it."""
    data = request.get_json(silent=True) or {}
    quantity = parse_int(data.get("quantity"), "quantity", minimum=0)

    cart = get_cart()
    if not product_service.set_cart_quantity(cart, product_id, quantity):
        raise ValidationError(f"Product {product_id} is not in the cart")
    return jsonify({"cart": cart_to_dict(cart)}), 200


@cart_bp.delete("/items/<int:product_id>")
@require_user
@json_errors("remove cart item")
def remove_item_route(product_id: int):
    cart = get_cart()
    cart.remove(product_id)
    return jsonify({"cart": cart_to_dict(cart)}), 200


@cart_bp.delete("")
@require_user
@json_errors("clear cart")
def clear_cart_route():
    cart = get_cart()
    cart.clear()
    return jsonify({"cart": cart_to_dict(cart)}), 200
