# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/matepos/routes/sales.py
"""
Sales API Routes

DESIGN:
- POST /api/sales charges the register cart with the submitted splits
- Split previews never write
- History is offset-paginated, newest first
- Cancellation is the only state change (completed -> cancelled)
"""

import io

from flask import Blueprint, current_app, g, jsonify, request, send_file

from ..decorators import json_errors, require_user
from ..services import export_service, sales_service
from ..services.payment_methods_service import method_names
from ..validation import ValidationError, parse_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _splits_from(data: dict) -> list:
    splits = data.get("payment_splits", [])
    if not isinstance(splits, list):
        raise ValidationError("payment_splits must be a list")
    return splits


def _page_args() -> tuple[int | None, int]:
    limit = request.args.get("limit")
    offset = request.args.get("offset", "0")
    page_size = parse_int(limit, "limit", minimum=1) if limit is not None else None
    return page_size, parse_int(offset, "offset", minimum=0)


def _page(page_size: int | None, offset: int) -> tuple[list[dict], int]:
    sales, total = sales_service.list_sales(page_size=page_size, offset=offset)
    names = method_names()
    return [s.to_dict(method_names=names) for s in sales], total


# =============================================================================
# CHECKOUT
# =============================================================================

@sales_bp.post("")
@require_user
@json_errors("register sale")
def checkout_route():
    """
    Register a sale for the current cart.

    Request body:
    {
        "payment_splits": [
            {"method": "cash", "amount": "200.00"},
            {"method": "card", "amount": "100.00"}
        ]
    }

    Returns:
        201: Sale created, cart cleared
        400: Splits incomplete / do not reconcile / unknown method
        403, 429, 500: Backend failure (cart left intact)
    """
    data = request.get_json(silent=True) or {}
    sale = sales_service.checkout(g.user_id, _splits_from(data))
    return jsonify({"sale": sale.to_dict(method_names=method_names())}), 201


@sales_bp.post("/splits/preview")
@require_user
@json_errors("preview payment splits")
def preview_splits_route():
    """Remaining amount, per-split ceilings and submit eligibility for the cart."""
    data = request.get_json(silent=True) or {}
    return jsonify(sales_service.preview_splits(_splits_from(data))), 200


# =============================================================================
# HISTORY
# =============================================================================

@sales_bp.get("")
@require_user
@json_errors("list sales")
def list_sales_route():
    """
    Query params:
    - limit: page size (default 20, max 100)
    - offset: rows to skip (default 0)
    """
    page_size, offset = _page_args()
    sales, total = _page(page_size, offset)
    return jsonify({"sales": sales, "total": total, "offset": offset}), 200


@sales_bp.get("/recent")
@require_user
@json_errors("load recent sales")
def recent_sales_route():
    """Latest completed sales for the dashboard; degrades to [] with an error message."""
    limit = parse_int(request.args.get("limit", "5"), "limit", minimum=1, maximum=50)
    sales, error = sales_service.load_recent_sales(
        limit=limit,
        timeout_seconds=current_app.config.get("DASHBOARD_READ_TIMEOUT_SECONDS"),
    )
    return jsonify({"sales": sales, "error": error}), 200


@sales_bp.get("/export")
@require_user
@json_errors("export sales")
def export_sales_route():
    """The requested history page as an xlsx workbook."""
    page_size, offset = _page_args()
    sales, _total = _page(page_size, offset)
    content, filename = export_service.sales_export(sales)
    return send_file(
        io.BytesIO(content),
        mimetype=export_service.XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


@sales_bp.get("/<int:sale_id>")
@require_user
@json_errors("get sale")
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    return jsonify({"sale": sale.to_dict(method_names=method_names())}), 200


# =============================================================================
# CANCELLATION
# =============================================================================

@sales_bp.post("/<int:sale_id>/cancel")
@require_user
@json_errors("cancel sale")
def cancel_sale_route(sale_id: int):
    """
    Returns:
        200: Sale cancelled
        404: Unknown sale
        409: Sale already cancelled
    """
    sale = sales_service.cancel_sale(sale_id)
    current_app.logger.info("Sale %s cancelled by %s", sale_id, g.user_id)
    return jsonify({"sale": sale.to_dict(method_names=method_names())}), 200
