# Overview: Sale recording, checkout from the register cart, history and cancellation.

"""
Sales Service

WHY: A sale is the only write that moves money into the cash ledger, so it
is validated completely before anything touches the database.

DESIGN:
- create_sale() validates in a fixed order (method format, then split
  reconciliation, then items) and raises before any write.
- The header and its items are written in ONE transaction: the header is
  flushed to obtain its id, the items are added, then everything commits.
  A failure anywhere rolls back both, so a header without items is never
  persisted.
- Writes are wrapped in run_with_retry, which only retries transient
  backend failures. Once retries are exhausted the error is classified
  (RateLimited / PermissionDenied / SaleCreationFailed) and the original
  exception is logged and chained.
- Cancellation is the only status transition: completed -> cancelled.
  Cancelling a cancelled sale is rejected (SaleStateError) rather than
  silently re-applied.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale, SaleItem, SALE_STATUS_COMPLETED, SALE_STATUS_CANCELLED
from ..validation import ValidationError
from ..values import MONEY_EPSILON, ZERO, to_money
from .cart_service import Cart, LineItem, get_cart
from .concurrency import call_with_timeout, classify_backend_error, lock_for_update, run_with_retry
from .errors import (
    DOMAIN_ERRORS,
    BackendUnavailable,
    InvalidPaymentMethodFormat,
    PaymentSplitMismatch,
    SaleCancellationFailed,
    SaleCreationFailed,
    SaleNotFound,
    SaleStateError,
)
from .payment_methods_service import active_method_codes, is_valid_method_code, method_names
from .payment_split_service import PaymentSplit, PaymentSplitAllocator


logger = logging.getLogger(__name__)


def _retry_settings() -> dict:
    return {
        "attempts": current_app.config.get("SALE_RETRY_ATTEMPTS", 3),
        "delay": current_app.config.get("SALE_RETRY_DELAY_SECONDS", 1.0),
    }


def _coerce_split(split) -> PaymentSplit:
    if isinstance(split, PaymentSplit):
        return split
    return PaymentSplit.from_dict(split)


def _product_fk(product_id) -> int | None:
    try:
        return int(product_id)
    except (TypeError, ValueError):
        return None


# =============================================================================
# SALE CREATION
# =============================================================================

def validate_sale_request(line_items: list[LineItem], payment_method: str, splits: list[PaymentSplit]) -> Decimal:
    """Run the pre-write checks. Returns the items total."""
    tokens = (payment_method or "").split(",")
    if not all(is_valid_method_code(token) for token in tokens):
        raise InvalidPaymentMethodFormat()

    items_total = sum((item.line_total for item in line_items), ZERO)
    splits_total = sum((split.amount for split in splits), ZERO)
    if abs(items_total - splits_total) > MONEY_EPSILON:
        raise PaymentSplitMismatch(items_total, splits_total)

    if not line_items:
        raise ValidationError("A sale needs at least one item")

    if len(splits) != len(tokens) or any(s.method != t for s, t in zip(splits, tokens)):
        raise ValidationError("payment_splits must list the payment methods in the same order")

    return to_money(items_total)


def create_sale(user_id: str, line_items: Iterable[LineItem], payment_method: str, payment_splits) -> Sale:
    """
    Record a completed sale with its items.

    ``payment_method`` is the comma-joined list of method codes, aligned by
    index with ``payment_splits``.
    """
    line_items = list(line_items)
    splits = [_coerce_split(s) for s in payment_splits]
    total = validate_sale_request(line_items, payment_method, splits)

    if not user_id:
        raise ValidationError("user_id is required")

    def _op():
        sale = Sale(
            user_id=str(user_id),
            payment_method=payment_method,
            payment_splits=[s.to_dict() for s in splits],
            total_amount=total,
            status=SALE_STATUS_COMPLETED,
        )
        db.session.add(sale)
        db.session.flush()

        for item in line_items:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=_product_fk(item.product_id),
                quantity=item.quantity,
                unit_price=item.unit_price,
                original_price=item.original_unit_price,
                product_name=item.name,
            ))

        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op, **_retry_settings())
    except DOMAIN_ERRORS:
        raise
    except Exception as exc:
        logger.exception("Sale creation failed for user %s", user_id)
        raise classify_backend_error(exc, SaleCreationFailed) from exc

    logger.info("Sale %s recorded: total=%s methods=%s", sale.id, total, payment_method)
    return sale


# =============================================================================
# CHECKOUT FROM THE REGISTER CART
# =============================================================================

def build_allocator(cart: Cart, splits=None) -> PaymentSplitAllocator:
    allocator = PaymentSplitAllocator(
        total=cart.total(),
        available_method_count=len(active_method_codes()),
        line_count=len(cart),
    )
    if splits:
        allocator.load([_coerce_split(s) for s in splits])
    return allocator


def preview_splits(splits=None, cart: Cart | None = None) -> dict:
    """Allocator state for the submitted splits (tail-corrected). Writes nothing."""
    allocator = build_allocator(get_cart() if cart is None else cart, splits)
    allocator.rebalance()
    return allocator.to_dict()


def checkout(user_id: str, splits, cart: Cart | None = None) -> Sale:
    """
    Charge the register cart with the given splits.

    The cart is cleared only once the sale is committed; on any failure it
    is left untouched so the operator can correct and resubmit.
    """
    if cart is None:
        cart = get_cart()
    allocator = build_allocator(cart, splits)

    if not allocator.can_submit():
        raise ValidationError("Complete every payment method and make the amounts add up to the total")

    active = active_method_codes()
    for split in allocator.splits:
        if not is_valid_method_code(split.method):
            raise InvalidPaymentMethodFormat()
        if split.method not in active:
            raise ValidationError(f"Payment method '{split.method}' is not available")

    sale = create_sale(user_id, cart.items, allocator.method_codes(), allocator.splits)
    cart.clear()
    return sale


# =============================================================================
# HISTORY
# =============================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFound(f"Sale {sale_id} not found")
    return sale


def list_sales(page_size: int | None = None, offset: int = 0) -> tuple[list[Sale], int]:
    """
    Offset-paginated sales, newest first.

    Rows inserted while paging shift later pages (offset pagination).
    """
    default_size = current_app.config.get("SALES_PAGE_SIZE", 20)
    max_size = current_app.config.get("SALES_MAX_PAGE_SIZE", 100)
    page_size = min(max(1, page_size or default_size), max_size)
    offset = max(0, offset or 0)

    query = db.session.query(Sale)
    total = query.count()
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset(offset)
        .limit(page_size)
        .all()
    )
    return sales, total


def get_recent_completed_sales(limit: int = 5) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(Sale.status == SALE_STATUS_COMPLETED)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )


def load_recent_sales(limit: int = 5, timeout_seconds: float | None = None) -> tuple[list[dict], str | None]:
    """
    Dashboard read of the latest completed sales.

    Falls back to an empty list plus a user-facing message when the read
    fails or exceeds the timeout.
    """
    def _read():
        names = method_names()
        return [s.to_dict(method_names=names) for s in get_recent_completed_sales(limit)]

    try:
        return call_with_timeout(_read, timeout_seconds), None
    except (TimeoutError, SQLAlchemyError):
        logger.warning("Recent sales read failed", exc_info=True)
        return [], BackendUnavailable.user_message


# =============================================================================
# CANCELLATION
# =============================================================================

def cancel_sale(sale_id: int) -> Sale:
    """
    completed -> cancelled.

    Stock is not restored; the ledger drops the sale because it only counts
    completed sales.
    """
    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise SaleNotFound(f"Sale {sale_id} not found")
        if sale.status != SALE_STATUS_COMPLETED:
            raise SaleStateError(f"Sale {sale_id} is already {sale.status}")

        sale.status = SALE_STATUS_CANCELLED
        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op, **_retry_settings())
    except DOMAIN_ERRORS:
        raise
    except Exception as exc:
        logger.exception("Cancelling sale %s failed", sale_id)
        raise classify_backend_error(exc, SaleCancellationFailed) from exc

    logger.info("Sale %s cancelled", sale_id)
    return sale
