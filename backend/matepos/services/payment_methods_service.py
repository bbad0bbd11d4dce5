# Overview: Payment method catalog (codes referenced by sales and cash movements).

from __future__ import annotations

import re

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PaymentMethod
from ..validation import ConflictError, ValidationError, require_text
from .errors import InvalidPaymentMethodFormat, PaymentMethodNotFound


METHOD_CODE_RE = re.compile(r"^[a-z]+$")


def is_valid_method_code(code) -> bool:
    return isinstance(code, str) and METHOD_CODE_RE.fullmatch(code) is not None


def _normalize_code(code) -> str:
    if not is_valid_method_code(code):
        raise InvalidPaymentMethodFormat("Payment method code must be lowercase letters only")
    return code


def list_payment_methods(active_only: bool = False) -> list[PaymentMethod]:
    query = db.session.query(PaymentMethod)
    if active_only:
        query = query.filter(PaymentMethod.active.is_(True))
    return query.order_by(PaymentMethod.name, PaymentMethod.id).all()


def method_names() -> dict[str, str]:
    """code -> display name, for every method (inactive included)."""
    return {code: name for code, name in db.session.query(PaymentMethod.code, PaymentMethod.name)}


def active_method_codes() -> set[str]:
    rows = db.session.query(PaymentMethod.code).filter(PaymentMethod.active.is_(True))
    return {code for (code,) in rows}


def get_payment_method(method_id: int) -> PaymentMethod:
    method = db.session.get(PaymentMethod, method_id)
    if method is None:
        raise PaymentMethodNotFound(f"Payment method {method_id} not found")
    return method


def _ensure_code_free(code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(PaymentMethod.id).filter(PaymentMethod.code == code)
    if exclude_id is not None:
        query = query.filter(PaymentMethod.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Payment method code '{code}' already exists")


def _commit_catalog_change() -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        # Unique index on code lost a race with another writer
        raise ConflictError("Payment method code already exists") from exc


def add_payment_method(code, name, active: bool = True) -> PaymentMethod:
    code = _normalize_code(code)
    name = require_text(name, "name", max_length=128)
    _ensure_code_free(code)

    method = PaymentMethod(code=code, name=name, active=bool(active))
    db.session.add(method)
    _commit_catalog_change()
    return method


def update_payment_method(method_id: int, code=None, name=None, active=None) -> PaymentMethod:
    """
    Edit a method.

    Renaming the code does not rewrite history: past sales keep the old
    code and show it as their name.
    """
    method = get_payment_method(method_id)

    if code is not None:
        code = _normalize_code(code)
        _ensure_code_free(code, exclude_id=method.id)
        method.code = code
    if name is not None:
        method.name = require_text(name, "name", max_length=128)
    if active is not None:
        if not isinstance(active, bool):
            raise ValidationError("active must be a boolean")
        method.active = active

    _commit_catalog_change()
    return method


def toggle_payment_method(method_id: int, active: bool) -> PaymentMethod:
    return update_payment_method(method_id, active=active)
