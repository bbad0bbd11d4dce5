# backend/matepos/config.py
from __future__ import annotations
import os


def _float_or_none(value: str | None, default: float | None) -> float | None:
    if value is None or value == "":
        return default
    parsed = float(value)
    return parsed if parsed > 0 else None


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/matepos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///matepos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Durable key/value storage for the register cart (one JSON file per key).
    # Relative paths resolve under the Flask instance folder.
    CART_STORAGE_DIR = os.environ.get("CART_STORAGE_DIR", "storage")

    # Sale creation / cancellation retry policy (fixed delay between attempts)
    SALE_RETRY_ATTEMPTS = int(os.environ.get("SALE_RETRY_ATTEMPTS", "3"))
    SALE_RETRY_DELAY_SECONDS = float(os.environ.get("SALE_RETRY_DELAY_SECONDS", "1.0"))

    # Dashboard reads give up after this many seconds (None runs inline)
    DASHBOARD_READ_TIMEOUT_SECONDS = _float_or_none(
        os.environ.get("DASHBOARD_READ_TIMEOUT_SECONDS"), 5.0
    )

    # Idle seconds between keep-alive comments on the ledger SSE stream
    STREAM_HEARTBEAT_SECONDS = 15.0

    SALES_PAGE_SIZE = 20
    SALES_MAX_PAGE_SIZE = 100

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
