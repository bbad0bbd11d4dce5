from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..decorators import json_errors, require_user
from ..services import discount_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api")


@settings_bp.get("/settings/discounts")
@json_errors("load discount settings")
def get_discounts_route():
    settings = discount_service.get_discount_settings()
    return jsonify({"discount_settings": settings.to_dict() if settings else None}), 200


@settings_bp.put("/settings/discounts")
@require_user
@json_errors("update discount settings")
def update_discounts_route():
    data = request.get_json(silent=True) or {}
    settings = discount_service.update_discount_settings(
        tier1_quantity=data.get("tier1_quantity"),
        tier1_discount=data.get("tier1_discount"),
        tier2_quantity=data.get("tier2_quantity"),
        tier2_discount=data.get("tier2_discount"),
    )
    return jsonify({"discount_settings": settings.to_dict()}), 200


@settings_bp.get("/wholesale-prices")
@json_errors("load wholesale price list")
def wholesale_prices_route():
    return jsonify({"products": discount_service.wholesale_price_list()}), 200
