# Overview: Flask API routes for the cash register ledger, manual movements and live stream.

"""
Cash Register API Routes

DESIGN:
- GET  /api/cash-register            ledger snapshot (per payment method)
- POST /api/cash-register/withdrawals / incomes   append a movement
- GET  /api/cash-register/stream     server-sent events, one snapshot per change
- GET  /api/cash-register/export     xlsx report of the ledger

The ledger read degrades to an empty snapshot with an "error" message
when the database is slow or unreachable.
"""

import io
import json
import threading

from flask import Blueprint, Response, current_app, g, jsonify, request, send_file

from ..decorators import json_errors, require_user
from ..services import cash_register_service, export_service
from ..services.cash_register_service import CashRegisterView
from ..services.change_feed import get_feed


cash_register_bp = Blueprint("cash_register", __name__, url_prefix="/api/cash-register")

# The stream also follows sales so new charges show up live
STREAM_TABLES = ("cash_withdrawals", "cash_incomes", "sales")


def _read_timeout():
    return current_app.config.get("DASHBOARD_READ_TIMEOUT_SECONDS")


@cash_register_bp.get("")
@require_user
@json_errors("load cash register")
def ledger_route():
    snapshot = cash_register_service.load_ledger_snapshot(_read_timeout())
    return jsonify(snapshot.to_dict()), 200


# =============================================================================
# MOVEMENTS
# =============================================================================

def _movement_args() -> dict:
    data = request.get_json(silent=True) or {}
    return {
        "method": data.get("payment_method"),
        "amount": data.get("amount"),
        "description": data.get("description"),
        "actor_id": g.user_id,
    }


@cash_register_bp.post("/withdrawals")
@require_user
@json_errors("register withdrawal")
def create_withdrawal_route():
    """
    Request body:
    {
        "payment_method": "cash",
        "amount": "150.00",
        "description": "Supplier payment"
    }

    Returns:
        201: Withdrawal recorded
        400: Invalid input or amount above the available balance
        404: Unknown payment method
    """
    withdrawal = cash_register_service.register_withdrawal(**_movement_args())
    return jsonify({"withdrawal": withdrawal.to_dict()}), 201


@cash_register_bp.get("/withdrawals")
@require_user
@json_errors("list withdrawals")
def list_withdrawals_route():
    rows = cash_register_service.list_withdrawals(method=request.args.get("payment_method"))
    return jsonify({"withdrawals": [w.to_dict() for w in rows]}), 200


@cash_register_bp.post("/incomes")
@require_user
@json_errors("register income")
def create_income_route():
    income = cash_register_service.register_income(**_movement_args())
    return jsonify({"income": income.to_dict()}), 201


@cash_register_bp.get("/incomes")
@require_user
@json_errors("list incomes")
def list_incomes_route():
    rows = cash_register_service.list_incomes(method=request.args.get("payment_method"))
    return jsonify({"incomes": [i.to_dict() for i in rows]}), 200


# =============================================================================
# LIVE STREAM / EXPORT
# =============================================================================

def _sse(snapshot) -> str:
    return f"event: ledger\ndata: {json.dumps(snapshot.to_dict())}\n\n"


@cash_register_bp.get("/stream")
@require_user
def stream_route():
    """
    Server-sent events: a ledger snapshot on connect and after every change.

    The change-feed subscription lives exactly as long as the response
    generator; closing the connection closes the generator, which closes
    the view.
    """
    app = current_app._get_current_object()
    heartbeat = app.config.get("STREAM_HEARTBEAT_SECONDS", 15.0)
    changed = threading.Event()
    view = CashRegisterView(
        get_feed(),
        timeout_seconds=_read_timeout(),
        tables=STREAM_TABLES,
        on_change=lambda change: changed.set(),
    )

    def generate():
        with app.app_context(), view:
            yield _sse(view.snapshot)
            while True:
                if changed.wait(heartbeat):
                    changed.clear()
                    yield _sse(view.snapshot)
                else:
                    yield ": keep-alive\n\n"

    return Response(generate(), mimetype="text/event-stream", headers={"Cache-Control": "no-cache"})


@cash_register_bp.get("/export")
@require_user
@json_errors("export cash register")
def export_route():
    snapshot = cash_register_service.load_ledger_snapshot(_read_timeout())
    if snapshot.error:
        return jsonify({"error": snapshot.error}), 503
    content, filename = export_service.ledger_export(snapshot)
    return send_file(
        io.BytesIO(content),
        mimetype=export_service.XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )
