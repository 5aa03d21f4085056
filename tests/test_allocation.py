from datetime import date

import pytest

from dairyflow.models import Invoice, Payment, PaymentAllocation, Sale
from dairyflow.services import allocation
from dairyflow.services.allocation import (
    AllocationItem, auto_allocate, check_overallocation, load_allocation_items,
    set_item_amount, summarize,
)
from dairyflow.services.errors import ValidationError
from dairyflow.services.outstanding import customer_balance
from dairyflow.utils.settings import set_setting
from conftest import make_credit_sale, make_customer, make_invoice


@pytest.fixture
def indebted(route):
    customer = make_customer("Meera Iyer", route=route, opening_balance=1000)
    make_invoice(customer, 500, date(2025, 5, 1))
    return customer


def _items():
    return [
        AllocationItem(id="sale:1", type="sale", label="s", max_amount=30, sort_date=date(2025, 1, 5), target_id=1),
        AllocationItem(id="invoice:2", type="invoice", label="i2", max_amount=200, sort_date=date(2025, 2, 1), target_id=2),
        AllocationItem(id="invoice:1", type="invoice", label="i1", max_amount=100, sort_date=date(2025, 1, 1), target_id=1),
        AllocationItem(id="opening_balance", type="opening_balance", label="ob", max_amount=50),
    ]


class TestAutoAllocate:
    def test_oldest_debt_first(self):
        items = {i.id: i for i in auto_allocate(_items(), 170)}
        assert items["opening_balance"].allocated_amount == 50
        assert items["invoice:1"].allocated_amount == 100
        assert items["invoice:2"].allocated_amount == 20
        assert items["sale:1"].allocated_amount == 0

    def test_never_exceeds_payment_or_item_max(self):
        for amount in (0.01, 49.99, 150, 379.99, 380, 1000):
            items = auto_allocate(_items(), amount)
            assert sum(i.allocated_amount for i in items) <= amount + 0.001
            assert all(0 <= i.allocated_amount <= i.max_amount for i in items)

    def test_resets_previous_amounts(self):
        items = _items()
        items[0].allocated_amount = 30
        auto_allocate(items, 10)
        assert items[0].allocated_amount == 0

    def test_remainder_reported(self):
        items = auto_allocate(_items(), 500)
        summary = summarize(items, 500)
        assert summary["total_allocated"] == 380
        assert summary["remaining"] == 120
        assert summary["over_allocated"] is False


class TestManualAllocation:
    def test_clamped_to_max(self):
        items = set_item_amount(_items(), "invoice:1", 250)
        assert items[2].allocated_amount == 100

    def test_negative_and_garbage_become_zero(self):
        items = set_item_amount(_items(), "invoice:1", -5)
        assert items[2].allocated_amount == 0
        items = set_item_amount(items, "invoice:1", "abc")
        assert items[2].allocated_amount == 0

    def test_unknown_item(self):
        with pytest.raises(ValidationError):
            set_item_amount(_items(), "invoice:99", 5)

    def test_over_allocation_flagged(self):
        items = set_item_amount(_items(), "invoice:2", 200)
        assert summarize(items, 150)["over_allocated"] is True


class TestPolicy:
    def test_warn_returns_message(self, app):
        assert "exceeds" in check_overallocation(120, 100, "warn")

    def test_reject_raises(self, app):
        with pytest.raises(ValidationError):
            check_overallocation(120, 100, "reject")

    def test_within_amount_is_fine(self, app):
        assert check_overallocation(100, 100, "reject") is None

    def test_setting_overrides_config(self, app):
        assert allocation.overallocation_policy() == "warn"
        set_setting("overallocation_policy", "reject")
        assert allocation.overallocation_policy() == "reject"


def test_items_for_customer(indebted, milk):
    make_credit_sale(indebted, milk, date(2025, 5, 20), 1, 80)
    items = load_allocation_items(indebted.id)
    assert [i.type for i in items] == ["opening_balance", "invoice", "sale"]
    assert [i.max_amount for i in items] == [1000, 500, 80]


def test_existing_allocations_are_prefilled_and_clamped(indebted):
    invoice = Invoice.query.one()
    items = load_allocation_items(indebted.id, existing=[
        {"type": "invoice", "id": invoice.id, "amount": 900},
        {"type": "opening_balance", "amount": 25},
    ])
    assert items[0].allocated_amount == 25
    assert items[1].allocated_amount == 500


def test_opening_balance_first_example(indebted):
    result = allocation.record_payment(indebted.id, 700, date(2025, 6, 1), auto_allocate=True)

    assert result["success"] is True
    assert result["total_allocated"] == 700
    assert result["unapplied_amount"] == 0
    allocations = {a["type"]: a["amount"] for a in result["payment"]["allocations"]}
    assert allocations == {"opening_balance": 700}

    balance = customer_balance(indebted.id)
    assert balance["effective_opening_balance"] == 300
    assert balance["invoice_outstanding"] == 500
    assert balance["total_outstanding"] == 800
    # Opening balance column itself is never rewritten.
    assert indebted.opening_balance == 1000
    assert Invoice.query.one().amount_paid == 0


def test_full_payment_marks_invoice_paid(indebted):
    allocation.record_payment(indebted.id, 1500, date(2025, 6, 1), auto_allocate=True)
    invoice = Invoice.query.one()
    assert invoice.status == "Paid"
    assert invoice.amount_outstanding == 0
    assert invoice.amount_paid == 500
    assert invoice.last_payment_date == date(2025, 6, 1)
    assert customer_balance(indebted.id)["total_outstanding"] == 0


def test_remainder_becomes_unapplied_credit(indebted):
    result = allocation.record_payment(indebted.id, 1600, auto_allocate=True)
    assert result["unapplied_amount"] == 100
    balance = customer_balance(indebted.id)
    assert balance["unapplied_credit"] == 100
    assert balance["net_outstanding"] == -100


def test_manual_allocation_to_invoice(indebted):
    invoice = Invoice.query.one()
    allocation.record_payment(indebted.id, 200, allocations=[
        {"type": "invoice", "id": invoice.id, "amount": 200},
    ])
    assert invoice.amount_outstanding == 300
    assert invoice.status == "Generated"
    assert customer_balance(indebted.id)["effective_opening_balance"] == 1000


def test_credit_sale_completed_when_covered(customer, milk):
    sale = make_credit_sale(customer, milk, date(2025, 5, 20), 1, 80)
    allocation.record_payment(customer.id, 80, allocations=[{"type": "sales", "id": sale.id, "amount": 80}])
    assert sale.payment_status == "Completed"


def test_unknown_allocation_type(indebted):
    result = allocation.record_payment(indebted.id, 10, allocations=[{"type": "voucher", "amount": 10}])
    assert result["success"] is False
    assert Payment.query.count() == 0


def test_over_allocation_warn_saves_with_warning(indebted):
    invoice = Invoice.query.one()
    result = allocation.record_payment(indebted.id, 300, allocations=[
        {"type": "opening_balance", "amount": 200},
        {"type": "invoice", "id": invoice.id, "amount": 200},
    ])
    assert result["success"] is True
    assert "exceeds" in result["warning"]
    assert result["unapplied_amount"] == 0


def test_over_allocation_reject_saves_nothing(indebted):
    set_setting("overallocation_policy", "reject")
    invoice = Invoice.query.one()
    result = allocation.record_payment(indebted.id, 300, allocations=[
        {"type": "opening_balance", "amount": 200},
        {"type": "invoice", "id": invoice.id, "amount": 200},
    ])
    assert result["success"] is False
    assert result["error_type"] == "validation"
    assert Payment.query.count() == 0
    assert PaymentAllocation.query.count() == 0


def test_non_positive_amount(indebted):
    assert allocation.record_payment(indebted.id, 0)["error_type"] == "validation"


def test_unknown_customer(app):
    assert allocation.record_payment(999, 10)["error_type"] == "not_found"


def test_allocate_unapplied_credit_later(customer, milk):
    payment_id = allocation.record_payment(customer.id, 100)["payment"]["id"]
    assert customer_balance(customer.id)["unapplied_credit"] == 100

    make_credit_sale(customer, milk, date(2025, 6, 2), 1, 60)
    result = allocation.allocate_unapplied(payment_id)

    assert result["total_allocated"] == 60
    assert result["unapplied_amount"] == 40
    assert Sale.query.one().payment_status == "Completed"


def test_allocate_unapplied_bounded_under_reject(customer, milk):
    payment_id = allocation.record_payment(customer.id, 50)["payment"]["id"]
    sale = make_credit_sale(customer, milk, date(2025, 6, 2), 1, 60)
    set_setting("overallocation_policy", "reject")

    result = allocation.allocate_unapplied(payment_id, [{"type": "sale", "id": sale.id, "amount": 60}])
    assert result["success"] is False
    assert PaymentAllocation.query.count() == 0


def test_allocate_without_credit(indebted):
    payment_id = allocation.record_payment(indebted.id, 100, auto_allocate=True)["payment"]["id"]
    assert allocation.allocate_unapplied(payment_id)["error_type"] == "validation"


def test_delete_payment_restores_invoice_and_sale(indebted, milk):
    sale = make_credit_sale(indebted, milk, date(2025, 5, 20), 1, 80)
    payment_id = allocation.record_payment(indebted.id, 1580, auto_allocate=True)["payment"]["id"]
    invoice = Invoice.query.one()
    assert invoice.status == "Paid"
    assert sale.payment_status == "Completed"

    assert allocation.delete_payment(payment_id)["success"] is True

    assert invoice.status == "Generated"
    assert invoice.amount_outstanding == 500
    assert invoice.last_payment_date is None
    assert sale.payment_status == "Pending"
    assert PaymentAllocation.query.count() == 0
    assert customer_balance(indebted.id)["total_outstanding"] == 1500


def test_bulk_payments_partial_success(indebted, customer):
    result = allocation.create_bulk_payments([
        {"customer_id": indebted.id, "amount": 100, "auto_allocate": True},
        {"customer_id": indebted.id, "amount": -5},
        {"customer_id": 999, "amount": 10},
        {"customer_id": customer.id, "amount": 20, "payment_method": "upi"},
    ])
    assert result["processed"] == 2
    assert result["total"] == 4
    assert [e["index"] for e in result["errors"]] == [1, 2]
    assert Payment.query.count() == 2


def test_list_payments_filters(indebted, customer):
    allocation.record_payment(indebted.id, 10, date(2025, 6, 1))
    allocation.record_payment(customer.id, 20, date(2025, 6, 5))
    assert len(allocation.list_payments(customer_id=customer.id)) == 1
    assert len(allocation.list_payments(date_from="2025-06-02")) == 1
