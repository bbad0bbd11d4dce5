# Overview: Cash drawer ledger per payment method, manual movements and the live register view.

"""
Cash Register Service

WHY: The drawer balance of each payment method is derived, never stored.
Every read recomputes it from completed sales, withdrawals and incomes so
the numbers cannot drift from the rows they summarize.

LEDGER (per payment method code):
- total_sales:       sum of split amounts of completed sales
- number_of_sales:   completed sales that used the method
- total_withdrawals / total_incomes: manual movements
- available:         total_sales - total_withdrawals + total_incomes

A sale without splits credits its whole total to its first method code.
Cancelled sales are excluded, which is how a cancellation "reverses" a
sale in the ledger.

WITHDRAWAL LIMIT: the "amount <= available" check reads the balance and
inserts within one session, without locking. Sequential withdrawals see
each other; two sessions withdrawing at the same moment can both pass the
check against the same balance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import CashIncome, CashWithdrawal, PaymentMethod, Sale, SALE_STATUS_COMPLETED
from ..validation import parse_amount, require_text
from ..values import ZERO, money_str, to_money, to_utc_z, utcnow
from .change_feed import Change, ChangeFeed, Subscription
from .concurrency import call_with_timeout, classify_backend_error
from .errors import (
    BackendUnavailable,
    CashMovementFailed,
    InsufficientFunds,
    InvalidPaymentMethodFormat,
    PaymentMethodNotFound,
)
from .payment_methods_service import is_valid_method_code, method_names


logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

DEFAULT_VIEW_TABLES = ("cash_withdrawals", "cash_incomes")


# =============================================================================
# LEDGER DATA
# =============================================================================

@dataclass
class LedgerRow:
    code: str
    name: str
    total_sales: Decimal = ZERO
    number_of_sales: int = 0
    total_withdrawals: Decimal = ZERO
    total_incomes: Decimal = ZERO
    first_sale: datetime | None = None
    last_sale: datetime | None = None
    percentage: Decimal = ZERO

    @property
    def available(self) -> Decimal:
        return self.total_sales - self.total_withdrawals + self.total_incomes

    @property
    def average_sale_amount(self) -> Decimal:
        if not self.number_of_sales:
            return ZERO
        return to_money(self.total_sales / self.number_of_sales)

    def _record_sale(self, amount: Decimal, created_at: datetime | None) -> None:
        self.total_sales += amount
        self.number_of_sales += 1
        if created_at is not None:
            if self.first_sale is None or created_at < self.first_sale:
                self.first_sale = created_at
            if self.last_sale is None or created_at > self.last_sale:
                self.last_sale = created_at

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "total_sales": money_str(self.total_sales),
            "number_of_sales": self.number_of_sales,
            "total_withdrawals": money_str(self.total_withdrawals),
            "total_incomes": money_str(self.total_incomes),
            "available": money_str(self.available),
            "average_sale_amount": money_str(self.average_sale_amount),
            "first_sale": to_utc_z(self.first_sale),
            "last_sale": to_utc_z(self.last_sale),
            "percentage": str(self.percentage),
        }


@dataclass
class LedgerSnapshot:
    rows: list[LedgerRow] = field(default_factory=list)
    error: str | None = None
    loaded_at: datetime = field(default_factory=utcnow)

    @property
    def total_sales(self) -> Decimal:
        return sum((r.total_sales for r in self.rows), ZERO)

    @property
    def total_withdrawals(self) -> Decimal:
        return sum((r.total_withdrawals for r in self.rows), ZERO)

    @property
    def total_incomes(self) -> Decimal:
        return sum((r.total_incomes for r in self.rows), ZERO)

    @property
    def net_available(self) -> Decimal:
        return self.total_sales - self.total_withdrawals + self.total_incomes

    def row(self, code: str) -> LedgerRow | None:
        for r in self.rows:
            if r.code == code:
                return r
        return None

    def to_dict(self) -> dict:
        return {
            "rows": [r.to_dict() for r in self.rows],
            "total_sales": money_str(self.total_sales),
            "total_withdrawals": money_str(self.total_withdrawals),
            "total_incomes": money_str(self.total_incomes),
            "net_available": money_str(self.net_available),
            "error": self.error,
            "loaded_at": to_utc_z(self.loaded_at),
        }


# =============================================================================
# AGGREGATION
# =============================================================================

def _sale_credits(payment_method: str, payment_splits, total_amount) -> list[tuple[str, Decimal]]:
    """(method, amount) pairs a completed sale contributes, one per method."""
    credits: dict[str, Decimal] = {}
    splits = payment_splits or []
    if splits:
        for split in splits:
            method = (split.get("method") or "").strip()
            if method:
                credits[method] = credits.get(method, ZERO) + to_money(Decimal(str(split.get("amount") or 0)))
    else:
        codes = [c.strip() for c in (payment_method or "").split(",") if c.strip()]
        if codes:
            credits[codes[0]] = to_money(total_amount)
    return list(credits.items())


def compute_ledger(method: str | None = None) -> LedgerSnapshot:
    """Recompute the per-method ledger from the source rows."""
    names = method_names()
    rows: dict[str, LedgerRow] = {}

    def _row(code: str) -> LedgerRow:
        if code not in rows:
            rows[code] = LedgerRow(code=code, name=names.get(code, code))
        return rows[code]

    sales = (
        db.session.query(Sale.payment_method, Sale.payment_splits, Sale.total_amount, Sale.created_at)
        .filter(Sale.status == SALE_STATUS_COMPLETED)
    )
    for sale in sales:
        for code, amount in _sale_credits(sale.payment_method, sale.payment_splits, sale.total_amount):
            if method is None or code == method:
                _row(code)._record_sale(amount, sale.created_at)

    for model, attr in ((CashWithdrawal, "total_withdrawals"), (CashIncome, "total_incomes")):
        query = db.session.query(model.payment_method, model.amount)
        if method is not None:
            query = query.filter(model.payment_method == method)
        for code, amount in query:
            row = _row(code)
            setattr(row, attr, getattr(row, attr) + to_money(amount))

    ordered = sorted(rows.values(), key=lambda r: (-r.total_sales, r.code))
    grand_total = sum((r.total_sales for r in ordered), ZERO)
    for r in ordered:
        r.percentage = (r.total_sales / grand_total * HUNDRED).quantize(Decimal("0.01")) if grand_total else ZERO
    return LedgerSnapshot(rows=ordered)


def get_available_amount(method: str) -> Decimal:
    row = compute_ledger(method).row(method)
    return row.available if row else ZERO


def load_ledger_snapshot(timeout_seconds: float | None = None) -> LedgerSnapshot:
    """
    Dashboard read of the ledger.

    On failure or timeout an empty snapshot carrying a user-facing error is
    returned instead of raising.
    """
    try:
        return call_with_timeout(compute_ledger, timeout_seconds)
    except (TimeoutError, SQLAlchemyError):
        logger.warning("Cash ledger read failed", exc_info=True)
        return LedgerSnapshot(error=BackendUnavailable.user_message)


# =============================================================================
# MANUAL MOVEMENTS
# =============================================================================

def _validate_movement(method, amount, description, actor_id) -> tuple[str, Decimal, str, str]:
    method = require_text(method, "payment_method")
    if not is_valid_method_code(method):
        raise InvalidPaymentMethodFormat()
    amount = parse_amount(amount, "amount", allow_zero=False)
    description = require_text(description, "description", max_length=255)
    actor_id = require_text(actor_id, "created_by", max_length=64)

    exists = db.session.query(PaymentMethod.id).filter(PaymentMethod.code == method).first()
    if exists is None:
        raise PaymentMethodNotFound(f"Payment method '{method}' not found")
    return method, amount, description, actor_id


def _append_movement(movement):
    db.session.add(movement)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Recording %s failed", movement.__tablename__)
        raise classify_backend_error(exc, CashMovementFailed) from exc
    return movement


def register_withdrawal(method, amount, description, actor_id) -> CashWithdrawal:
    """Take money out of a method's drawer; cannot exceed what it holds."""
    method, amount, description, actor_id = _validate_movement(method, amount, description, actor_id)

    available = get_available_amount(method)
    if amount > available:
        raise InsufficientFunds(method, amount, available)

    withdrawal = _append_movement(CashWithdrawal(
        payment_method=method, amount=amount, description=description, created_by=actor_id,
    ))
    logger.info("Withdrawal of %s from %s by %s", amount, method, actor_id)
    return withdrawal


def register_income(method, amount, description, actor_id) -> CashIncome:
    method, amount, description, actor_id = _validate_movement(method, amount, description, actor_id)

    income = _append_movement(CashIncome(
        payment_method=method, amount=amount, description=description, created_by=actor_id,
    ))
    logger.info("Income of %s into %s by %s", amount, method, actor_id)
    return income


def _list_movements(model, method: str | None):
    query = db.session.query(model)
    if method:
        query = query.filter(model.payment_method == method)
    return query.order_by(model.created_at.desc(), model.id.desc()).all()


def list_withdrawals(method: str | None = None) -> list[CashWithdrawal]:
    return _list_movements(CashWithdrawal, method)


def list_incomes(method: str | None = None) -> list[CashIncome]:
    return _list_movements(CashIncome, method)


# =============================================================================
# LIVE VIEW
# =============================================================================

class CashRegisterView:
    """
    Live consumer of the ledger.

    LIFECYCLE: open() subscribes to the change feed and loads a snapshot;
    close() unsubscribes and may be called any number of times. Used as a
    context manager the subscription never outlives the block.

    Every notification marks the snapshot stale; the next read of
    ``snapshot`` reloads it in full. Notifications arrive while the writer
    is committing, which is why the reload is not done in the callback.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        timeout_seconds: float | None = None,
        tables=DEFAULT_VIEW_TABLES,
        on_change: Callable[[Change], None] | None = None,
    ):
        self._feed = feed
        self._timeout = timeout_seconds
        self._tables = tuple(tables)
        self._on_change = on_change
        self._subscription: Subscription | None = None
        self._snapshot: LedgerSnapshot | None = None
        self._stale = True
        self.notifications = 0

    @property
    def is_open(self) -> bool:
        return self._subscription is not None

    def open(self) -> "CashRegisterView":
        if self._subscription is None:
            self._subscription = self._feed.subscribe(self._tables, self._handle_change)
            self.reload()
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def __enter__(self) -> "CashRegisterView":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _handle_change(self, change: Change) -> None:
        self._stale = True
        self.notifications += 1
        if self._on_change is not None:
            self._on_change(change)

    @property
    def stale(self) -> bool:
        return self._stale

    def reload(self) -> LedgerSnapshot:
        self._snapshot = load_ledger_snapshot(self._timeout)
        self._stale = False
        return self._snapshot

    @property
    def snapshot(self) -> LedgerSnapshot:
        if self._stale or self._snapshot is None:
            return self.reload()
        return self._snapshot
