# Overview: Flask API routes for the payment method catalog.

from flask import Blueprint, jsonify, request

from ..decorators import json_errors, require_user
from ..services import payment_methods_service
from ..validation import ValidationError


payment_methods_bp = Blueprint("payment_methods", __name__, url_prefix="/api/payment-methods")


def _flag(value, field: str):
    if value is None or isinstance(value, bool):
        return value
    raise ValidationError(f"{field} must be a boolean")


@payment_methods_bp.get("")
@json_errors("list payment methods")
def list_payment_methods_route():
    """Query params: active_only=true to hide deactivated methods."""
    active_only = request.args.get("active_only", "false").lower() == "true"
    methods = payment_methods_service.list_payment_methods(active_only=active_only)
    return jsonify({"payment_methods": [m.to_dict() for m in methods]}), 200


@payment_methods_bp.post("")
@require_user
@json_errors("create payment method")
def create_payment_method_route():
    """
    Request body:
    {
        "code": "transfer",   (lowercase letters only, unique)
        "name": "Bank transfer",
        "active": true        (optional)
    }

    Returns:
        201: Created
        400: Invalid code or name
        409: Code already exists
    """
    data = request.get_json(silent=True) or {}
    active = _flag(data.get("active"), "active")
    method = payment_methods_service.add_payment_method(
        code=data.get("code"),
        name=data.get("name"),
        active=True if active is None else active,
    )
    return jsonify({"payment_method": method.to_dict()}), 201


@payment_methods_bp.patch("/<int:method_id>")
@require_user
@json_errors("update payment method")
def update_payment_method_route(method_id: int):
    data = request.get_json(silent=True) or {}
    method = payment_methods_service.update_payment_method(
        method_id,
        code=data.get("code"),
        name=data.get("name"),
        active=_flag(data.get("active"), "active"),
    )
    return jsonify({"payment_method": method.to_dict()}), 200


@payment_methods_bp.post("/<int:method_id>/toggle")
@require_user
@json_errors("toggle payment method")
def toggle_payment_method_route(method_id: int):
    """Request body: {"active": false}"""
    data = request.get_json(silent=True) or {}
    active = _flag(data.get("active"), "active")
    if active is None:
        raise ValidationError("active is required")
    method = payment_methods_service.toggle_payment_method(method_id, active)
    return jsonify({"payment_method": method.to_dict()}), 200
