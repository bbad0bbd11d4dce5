# backend/matepos/routes/system.py
"""
System health endpoint.

Reports database reachability and whether the register is configured
(payment methods and discount settings present), plus live listener counts.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import DiscountSettings, PaymentMethod
from ..services.cart_service import get_cart
from ..services.change_feed import get_feed
from ..values import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        active_methods = db.session.query(PaymentMethod).filter_by(active=True).count()
        has_discounts = db.session.query(DiscountSettings).count() > 0

        elapsed_ms = (time.time() - start_time) * 1000
        details = {
            "active_payment_methods": active_methods,
            "discount_settings": has_discounts,
        }

        # Without active methods no sale can be registered
        if active_methods == 0 or not has_discounts:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "Register not initialized (run: flask system init)",
                "details": details,
            }

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (still operational)
    - 503: database unreachable
    """
    start_time = time.time()
    database_health = check_database_health()

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    else:
        overall_status, http_status = database_health["status"], 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "change_feed": {"subscribers": get_feed().subscriber_count},
            "cart": {"listeners": get_cart().listener_count},
        },
    }, http_status
