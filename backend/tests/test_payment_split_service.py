# Overview: Pytest coverage for the payment split allocator.

from decimal import Decimal

import pytest

from matepos.services.payment_split_service import PaymentSplit, PaymentSplitAllocator
from matepos.validation import ValidationError


def D(value):
    return Decimal(value)


class TestInitialState:
    def test_single_split_follows_total(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        assert allocator.splits == [PaymentSplit("", D("300.00"))]

        allocator.set_total(D("450"))
        assert allocator.splits[0].amount == D("450.00")

    def test_total_change_leaves_multiple_splits_alone(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([PaymentSplit("cash", D("200")), PaymentSplit("card", D("100"))])

        allocator.set_total(D("400"))
        assert [s.amount for s in allocator.splits] == [D("200.00"), D("100.00")]
        assert allocator.remaining() == D("100.00")


class TestSingleMethodThenSplit:
    def test_full_amount_on_one_method_can_submit(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.update_split(0, method="cash")
        assert allocator.can_submit() is True

    def test_no_split_can_be_added_once_fully_paid(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.update_split(0, method="cash")

        assert allocator.can_add_split() is False
        assert allocator.add_split() is False
        assert len(allocator.splits) == 1

    def test_zero_second_split_blocks_submit_until_redistributed(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([PaymentSplit("cash", D("300")), PaymentSplit("card", D("0"))])

        assert allocator.splits[0].amount == D("300.00")
        assert allocator.can_submit() is False

        allocator.update_split(0, amount="200")
        allocator.update_split(1, amount="100")
        assert allocator.can_submit() is True


class TestAddRemove:
    def test_add_split_when_amount_remains(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=2, line_count=1)
        allocator.update_split(0, method="cash", amount="100")

        assert allocator.add_split() is True
        assert allocator.splits[1] == PaymentSplit("", D("0"))

    def test_add_split_bounded_by_method_count(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=2, line_count=1)
        allocator.update_split(0, amount="100")
        allocator.add_split()

        assert allocator.remaining() == D("200.00")
        assert allocator.add_split() is False

    def test_remove_split_recomputes_remaining(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([PaymentSplit("cash", D("200")), PaymentSplit("card", D("100"))])

        allocator.remove_split(1)
        assert allocator.remaining() == D("100.00")
        assert allocator.can_submit() is False


class TestTailAbsorbsDrift:
    def test_overpayment_taken_from_last_split(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([PaymentSplit("cash", D("200")), PaymentSplit("card", D("100"))])

        allocator.update_split(0, amount="250")
        assert [s.amount for s in allocator.splits] == [D("250.00"), D("50.00")]
        assert allocator.remaining() == D("0.00")

    def test_earlier_splits_never_adjusted(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([
            PaymentSplit("cash", D("100")),
            PaymentSplit("card", D("100")),
            PaymentSplit("transfer", D("100")),
        ])

        allocator.update_split(1, amount="180")
        assert [s.amount for s in allocator.splits] == [D("100.00"), D("180.00"), D("20.00")]

    def test_tail_clamped_at_zero(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([PaymentSplit("cash", D("200")), PaymentSplit("card", D("30"))])

        allocator.update_split(0, amount="320")
        assert [s.amount for s in allocator.splits] == [D("320.00"), D("0.00")]
        assert allocator.remaining() == D("-20.00")
        assert allocator.can_submit() is False


class TestQueries:
    def test_max_allowed_is_total_minus_other_splits(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([PaymentSplit("cash", D("200")), PaymentSplit("card", D("50"))])

        assert allocator.max_allowed(0) == D("250.00")
        assert allocator.max_allowed(1) == D("100.00")

    def test_reads_are_idempotent(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([PaymentSplit("cash", D("120.10")), PaymentSplit("card", D("50"))])

        assert allocator.remaining() == allocator.remaining() == D("129.90")
        assert allocator.max_allowed(1) == allocator.max_allowed(1)
        assert [s.amount for s in allocator.splits] == [D("120.10"), D("50.00")]

    @pytest.mark.parametrize("splits, expected", [
        ([("cash", "299.995")], True),
        ([("cash", "299.98")], False),
        ([("", "300")], False),
        ([("cash", "300"), ("card", "0")], False),
        ([("cash", "150"), ("card", "150")], True),
    ])
    def test_can_submit(self, splits, expected):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([PaymentSplit(method, D(amount)) for method, amount in splits])
        assert allocator.can_submit() is expected

    def test_cannot_submit_without_cart_lines(self):
        allocator = PaymentSplitAllocator(total=D("0"), available_method_count=3, line_count=0)
        allocator.update_split(0, method="cash", amount="10")
        assert allocator.can_submit() is False

    def test_method_codes_joined_in_order(self):
        allocator = PaymentSplitAllocator(total=D("300"), available_method_count=3, line_count=1)
        allocator.load([PaymentSplit("card", D("100")), PaymentSplit("cash", D("200"))])
        assert allocator.method_codes() == "card,cash"

    def test_from_dict_rejects_negative_amount(self):
        with pytest.raises(ValidationError):
            PaymentSplit.from_dict({"method": "cash", "amount": "-5"})
