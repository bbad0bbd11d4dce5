# Overview: Register cart aggregate with change subscriptions and durable local storage.

"""
Cart Aggregate

The cart lives outside the database: it is a working document of the
register, persisted as JSON under a fixed storage key so it survives
restarts. Money is stored as strings to survive JSON serialisation.

SUBSCRIPTIONS:
- subscribe(callback) delivers the current snapshot immediately, then a
  fresh snapshot after every mutation.
- The returned callable unsubscribes; consumers call it when they go away.

PRICING: callers compute the tiered unit price (discount_service.unit_price)
before calling add()/set_quantity(); the cart stores what it is given.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable

from flask import current_app

from ..validation import ValidationError, require_text
from ..values import ZERO, money_str, to_money


logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "cart"

CartListener = Callable[[list["LineItem"]], None]


# =============================================================================
# LINE ITEM
# =============================================================================

@dataclass
class LineItem:
    product_id: int | str
    name: str
    quantity: int
    unit_price: Decimal
    original_unit_price: Decimal

    def __post_init__(self):
        if self.product_id is None or self.product_id == "":
            raise ValidationError("Invalid product id")
        self.name = require_text(self.name, "name")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValidationError("quantity must be a positive integer")
        self.unit_price = to_money(self.unit_price)
        self.original_unit_price = to_money(self.original_unit_price)
        if self.unit_price < 0 or self.original_unit_price < 0:
            raise ValidationError("prices must be >= 0")
        if self.unit_price > self.original_unit_price:
            raise ValidationError("unit_price cannot exceed original_unit_price")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def line_subtotal(self) -> Decimal:
        return self.original_unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "original_unit_price": money_str(self.original_unit_price),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        return cls(
            product_id=data["product_id"],
            name=data["name"],
            quantity=data["quantity"],
            unit_price=Decimal(str(data["unit_price"])),
            original_unit_price=Decimal(str(data["original_unit_price"])),
        )


# =============================================================================
# STORAGE
# =============================================================================

class JsonFileStorage:
    """
    Minimal durable key/value store: one file per key under ``directory``.

    Writes go to a temp file first and are moved into place, so a crash
    mid-write never leaves a truncated payload behind.
    """

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def get_item(self, key: str) -> str | None:
        try:
            with open(self._path(key), "r", encoding="utf-8") as fh:
                return fh.read()
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_path, self._path(key))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


# =============================================================================
# CART
# =============================================================================

class Cart:
    def __init__(self, storage, key: str = CART_STORAGE_KEY):
        self._storage = storage
        self._key = key
        self._items: list[LineItem] = []
        self._listeners: dict[int, CartListener] = {}
        self._next_token = 0
        self._load()

    # ---- subscriptions ------------------------------------------------------

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener
        listener(self.items)

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # ---- reads --------------------------------------------------------------

    @property
    def items(self) -> list[LineItem]:
        """Snapshot copy; mutating it never touches the cart."""
        return [replace(item) for item in self._items]

    def get(self, product_id) -> LineItem | None:
        for item in self._items:
            if item.product_id == product_id:
                return replace(item)
        return None

    def __len__(self) -> int:
        return len(self._items)

    def count(self) -> int:
        return sum(item.quantity for item in self._items)

    def total(self) -> Decimal:
        return sum((item.line_total for item in self._items), ZERO)

    def subtotal(self) -> Decimal:
        return sum((item.line_subtotal for item in self._items), ZERO)

    def savings(self) -> Decimal:
        return self.subtotal() - self.total()

    # ---- mutations ----------------------------------------------------------

    def add(self, product_id, name: str, unit_price, quantity: int | None = None,
            original_unit_price=None) -> LineItem:
        """
        Add units of a product.

        Existing line: quantity grows and unit price (and original price,
        when given) are overwritten. New line: quantity defaults to 1 and the
        original price defaults to the unit price.
        """
        quantity = 1 if quantity is None else quantity
        existing = self._find(product_id)

        if existing is not None:
            updated = LineItem(
                product_id=existing.product_id,
                name=existing.name,
                quantity=existing.quantity + quantity,
                unit_price=unit_price,
                original_unit_price=(
                    original_unit_price if original_unit_price is not None
                    else existing.original_unit_price
                ),
            )
            items = [updated if item is existing else item for item in self._items]
            line = updated
        else:
            line = LineItem(
                product_id=product_id,
                name=name,
                quantity=quantity,
                unit_price=unit_price,
                original_unit_price=original_unit_price if original_unit_price is not None else unit_price,
            )
            items = self._items + [line]

        self._commit(items)
        return replace(line)

    def set_quantity(self, product_id, quantity: int, new_unit_price=None) -> bool:
        """Set a line's quantity (<= 0 removes it). Returns False if the line is absent."""
        existing = self._find(product_id)
        if existing is None:
            return False

        if quantity <= 0:
            items = [item for item in self._items if item is not existing]
        else:
            updated = LineItem(
                product_id=existing.product_id,
                name=existing.name,
                quantity=quantity,
                unit_price=new_unit_price if new_unit_price is not None else existing.unit_price,
                original_unit_price=existing.original_unit_price,
            )
            items = [updated if item is existing else item for item in self._items]

        self._commit(items)
        return True

    def remove(self, product_id) -> None:
        self._commit([item for item in self._items if item.product_id != product_id])

    def clear(self) -> None:
        self._commit([])

    # ---- internals ----------------------------------------------------------

    def _find(self, product_id) -> LineItem | None:
        for item in self._items:
            if item.product_id == product_id:
                return item
        return None

    def _commit(self, items: list[LineItem]) -> None:
        """Persist ``items`` and only then make them the cart's lines."""
        self._save(items)
        self._items = items
        snapshot = self.items
        for listener in list(self._listeners.values()):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Cart listener failed")

    def _save(self, items: list[LineItem]) -> None:
        payload = json.dumps([item.to_dict() for item in items])
        self._storage.set_item(self._key, payload)

    def _load(self) -> None:
        try:
            # A file that is not valid UTF-8 fails here with UnicodeDecodeError
            raw = self._storage.get_item(self._key)
            if raw is None:
                return
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("cart payload is not a list")
            self._items = [LineItem.from_dict(entry) for entry in data]
        except (ValueError, TypeError, KeyError, ArithmeticError) as exc:
            # ValidationError is a ValueError
            logger.warning("Discarding unreadable cart payload under %r: %s", self._key, exc)
            self._items = []
            self._save(self._items)


def get_cart() -> Cart:
    """The register cart of the current app, created on first use."""
    cart = current_app.extensions.get("matepos.cart")
    if cart is None:
        directory = current_app.config["CART_STORAGE_DIR"]
        if not os.path.isabs(directory):
            directory = os.path.join(current_app.instance_path, directory)
        cart = Cart(JsonFileStorage(directory))
        current_app.extensions["matepos.cart"] = cart
    return cart


def cart_to_dict(cart: Cart) -> dict:
    return {
        "items": [item.to_dict() for item in cart.items],
        "count": cart.count(),
        "total": money_str(cart.total()),
        "subtotal": money_str(cart.subtotal()),
        "savings": money_str(cart.savings()),
    }
