# Overview: Flask API routes for the product catalog read side.

from flask import Blueprint, jsonify, request

from ..decorators import json_errors
from ..services import product_service
from ..validation import parse_int


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@json_errors("list products")
def list_products_route():
    """Products with their category name. Optional ?category_id= filter."""
    category_id = request.args.get("category_id")
    if category_id is not None:
        category_id = parse_int(category_id, "category_id", minimum=1)
    return jsonify({"products": product_service.get_products(category_id=category_id)}), 200


@products_bp.get("/<int:product_id>")
@json_errors("get product")
def get_product_route(product_id: int):
    return jsonify({"product": product_service.get_product(product_id)}), 200
