# Overview: Split-payment allocation for a sale being registered at the register.

"""
Payment Split Allocator

Holds the ordered (method, amount) pairs an operator builds while charging
a sale and answers whether they reconcile with the sale total.

DESIGN:
- Always starts with one empty split.
- While exactly one split exists, it follows the total.
- Overpayment after an edit is clawed back from the LAST split only,
  clamped at 0. Earlier splits are never touched.
- Nothing here writes to the database; checkout() in sales_service turns
  an allocator that can_submit() into a sale.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..validation import ValidationError, parse_amount
from ..values import MONEY_EPSILON, ZERO, money_str, to_money


@dataclass
class PaymentSplit:
    method: str = ""
    amount: Decimal = ZERO

    def to_dict(self) -> dict:
        return {"method": self.method, "amount": money_str(self.amount)}

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentSplit":
        if not isinstance(data, dict):
            raise ValidationError("Each payment split must be an object")
        method = data.get("method") or ""
        if not isinstance(method, str):
            raise ValidationError("Payment split method must be a string")
        return cls(method=method.strip(), amount=parse_amount(data.get("amount", 0), "amount"))


class PaymentSplitAllocator:
    def __init__(self, total=ZERO, available_method_count: int = 0, line_count: int = 0):
        self.available_method_count = available_method_count
        self.line_count = line_count
        self.splits: list[PaymentSplit] = [PaymentSplit()]
        self.total = ZERO
        self.set_total(total)

    # =========================================================================
    # STATE CHANGES
    # =========================================================================

    def set_total(self, total) -> None:
        """New sale total; a lone split is re-initialised to it."""
        self.total = to_money(total)
        if len(self.splits) == 1:
            self.splits[0].amount = self.total

    def load(self, splits: list[PaymentSplit]) -> None:
        """Replace the splits with an operator-submitted list, as is."""
        self.splits = [PaymentSplit(s.method, to_money(s.amount)) for s in splits]

    def add_split(self) -> bool:
        if not self.can_add_split():
            return False
        self.splits.append(PaymentSplit())
        return True

    def remove_split(self, index: int) -> None:
        del self.splits[index]
        self.rebalance()

    def update_split(self, index: int, method: str | None = None, amount=None) -> None:
        split = self.splits[index]
        if method is not None:
            split.method = method.strip()
        if amount is not None:
            split.amount = parse_amount(amount, "amount")
        self.rebalance()

    def rebalance(self) -> None:
        """Claw an overpayment back from the tail split."""
        remaining = self.remaining()
        if remaining < 0 and self.splits:
            tail = self.splits[-1]
            tail.amount = max(ZERO, tail.amount + remaining)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def paid(self) -> Decimal:
        return sum((s.amount for s in self.splits), ZERO)

    def remaining(self) -> Decimal:
        return self.total - self.paid()

    def max_allowed(self, index: int) -> Decimal:
        others = sum((s.amount for i, s in enumerate(self.splits) if i != index), ZERO)
        return self.total - others

    def can_add_split(self) -> bool:
        return len(self.splits) < self.available_method_count and self.remaining() > 0

    def can_submit(self) -> bool:
        if self.line_count <= 0 or not self.splits:
            return False
        if not all(s.method and s.amount > 0 for s in self.splits):
            return False
        return abs(self.remaining()) < MONEY_EPSILON

    def method_codes(self) -> str:
        return ",".join(s.method for s in self.splits)

    def to_dict(self) -> dict:
        return {
            "total": money_str(self.total),
            "splits": [s.to_dict() for s in self.splits],
            "remaining": money_str(self.remaining()),
            "max_allowed": [money_str(self.max_allowed(i)) for i in range(len(self.splits))],
            "can_add_split": self.can_add_split(),
            "can_submit": self.can_submit(),
        }
