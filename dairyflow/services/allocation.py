"""
Payment allocation.

A payment is split across the customer's opening balance, unpaid
invoices and pending credit sales. Allocations are stored as
PaymentAllocation rows; whatever is left over stays on the payment as
unapplied credit. Invoice paid/outstanding columns are refreshed from the
allocation rows every time they change.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import date
from typing import List, Optional

from dairyflow.extensions import db
from dairyflow.forms.payment_form import PaymentForm
from dairyflow.models.customer import Customer
from dairyflow.models.invoice import Invoice, INVOICE_GENERATED, INVOICE_PAID
from dairyflow.models.payment import (
    Payment, PaymentAllocation, ALLOCATION_TARGETS,
    TARGET_INVOICE, TARGET_OPENING_BALANCE, TARGET_SALE,
)
from dairyflow.models.sale import Sale, SALE_CREDIT, STATUS_COMPLETED, STATUS_PENDING
from dairyflow.services.errors import NotFoundError, ValidationError, server_action
from dairyflow.services.outstanding import customer_balance, invoice_allocation_totals
from dairyflow.services.transaction import unit_of_work
from dairyflow.utils.dates import business_today
from dairyflow.utils.helpers import form_errors, log_audit, parse_date, round_money, to_formdata
from dairyflow.utils.settings import get_setting

logger = logging.getLogger(__name__)

POLICY_WARN = "warn"
POLICY_REJECT = "reject"
TOLERANCE = 0.005


@dataclass
class AllocationItem:
    """One thing a payment can be applied to."""
    id: str                      # "opening_balance", "invoice:<id>" or "sale:<id>"
    type: str
    label: str
    max_amount: float
    allocated_amount: float = 0.0
    sort_date: Optional[date] = None
    target_id: Optional[int] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["sort_date"] = self.sort_date.isoformat() if self.sort_date else None
        return data


def item_key(target_type: str, target_id=None) -> str:
    if target_type == "sales":
        target_type = TARGET_SALE
    if target_type == TARGET_OPENING_BALANCE:
        return TARGET_OPENING_BALANCE
    return f"{target_type}:{target_id}"


def _clamp(amount, maximum) -> float:
    try:
        amount = float(amount or 0.0)
    except (TypeError, ValueError):
        amount = 0.0
    return round_money(min(max(amount, 0.0), maximum))


# ── Items ────────────────────────────────────────────────────────────────────

def load_allocation_items(customer_id, existing=None) -> List[AllocationItem]:
    """
    Everything still owed by the customer. `existing` is a list of
    {type, id, amount} allocations to pre-fill (clamped to each max).
    """
    balance = customer_balance(customer_id)
    customer = balance["customer"]
    items = []

    if balance["effective_opening_balance"] > 0:
        items.append(AllocationItem(
            id=TARGET_OPENING_BALANCE,
            type=TARGET_OPENING_BALANCE,
            label="Opening balance",
            max_amount=balance["effective_opening_balance"],
            sort_date=customer.created_at.date() if customer.created_at else None,
        ))

    invoices = (
        Invoice.query
        .filter(Invoice.customer_id == customer.id, Invoice.status != INVOICE_PAID)
        .order_by(Invoice.invoice_date, Invoice.id)
        .all()
    )
    allocated = invoice_allocation_totals([i.id for i in invoices])
    for invoice in invoices:
        remaining = max(0.0, round_money(invoice.total_amount - allocated.get(invoice.id, 0.0)))
        if remaining > 0:
            items.append(AllocationItem(
                id=item_key(TARGET_INVOICE, invoice.id),
                type=TARGET_INVOICE,
                label=f"Invoice {invoice.invoice_number}",
                max_amount=remaining,
                sort_date=invoice.invoice_date,
                target_id=invoice.id,
            ))

    sales = (
        Sale.query
        .filter(
            Sale.customer_id == customer.id,
            Sale.sale_type == SALE_CREDIT,
            Sale.payment_status == STATUS_PENDING,
        )
        .order_by(Sale.sale_date, Sale.id)
        .all()
    )
    for sale in sales:
        if sale.amount_remaining > 0:
            items.append(AllocationItem(
                id=item_key(TARGET_SALE, sale.id),
                type=TARGET_SALE,
                label=f"{sale.product.name} on {sale.sale_date.isoformat()}",
                max_amount=sale.amount_remaining,
                sort_date=sale.sale_date,
                target_id=sale.id,
            ))

    for alloc in existing or []:
        key = item_key(alloc.get("type"), alloc.get("id"))
        for item in items:
            if item.id == key:
                item.allocated_amount = _clamp(alloc.get("amount"), item.max_amount)
    return items


def set_item_amount(items, item_id, amount) -> List[AllocationItem]:
    """Manual allocation: the amount is clamped to [0, max_amount]."""
    for item in items:
        if item.id == item_id:
            item.allocated_amount = _clamp(amount, item.max_amount)
            return items
    raise ValidationError(f"Unknown allocation target: {item_id}")


def _auto_order(item):
    rank = {TARGET_OPENING_BALANCE: 0, TARGET_INVOICE: 1, TARGET_SALE: 2}[item.type]
    return (rank, item.sort_date or date.min, item.target_id or 0)


def auto_allocate(items, payment_amount) -> List[AllocationItem]:
    """Oldest debt first: opening balance, then invoices, then credit sales."""
    remaining = round_money(payment_amount)
    for item in items:
        item.allocated_amount = 0.0
    for item in sorted(items, key=_auto_order):
        if remaining <= 0:
            break
        item.allocated_amount = round_money(min(item.max_amount, remaining))
        remaining = round_money(remaining - item.allocated_amount)
    return items


def summarize(items, payment_amount) -> dict:
    total = round_money(sum(item.allocated_amount for item in items))
    return {
        "payment_amount": round_money(payment_amount),
        "total_allocated": total,
        "remaining": round_money(payment_amount - total),
        "over_allocated": total > round_money(payment_amount) + TOLERANCE,
    }


def overallocation_policy() -> str:
    policy = str(get_setting("overallocation_policy", POLICY_WARN)).lower()
    return policy if policy in (POLICY_WARN, POLICY_REJECT) else POLICY_WARN


def check_overallocation(total_allocated, payment_amount, policy=None):
    """Return a warning message (warn policy) or raise (reject policy)."""
    if total_allocated <= payment_amount + TOLERANCE:
        return None
    message = (
        f"Allocated {total_allocated:.2f} exceeds the available amount {payment_amount:.2f}"
    )
    if (policy or overallocation_policy()) == POLICY_REJECT:
        raise ValidationError(message)
    logger.warning(message)
    return message


# ── Cache refresh ────────────────────────────────────────────────────────────

def refresh_invoice(invoice: Invoice) -> None:
    """Recompute the cached paid/outstanding figures from allocation rows."""
    allocated = invoice_allocation_totals([invoice.id]).get(invoice.id, 0.0)
    invoice.amount_paid = round_money(min(allocated, invoice.total_amount))
    invoice.amount_outstanding = max(0.0, round_money(invoice.total_amount - allocated))
    if invoice.amount_outstanding <= 0:
        invoice.status = INVOICE_PAID
    elif invoice.status == INVOICE_PAID:
        invoice.status = INVOICE_GENERATED
    last = (
        db.session.query(db.func.max(Payment.payment_date))
        .join(PaymentAllocation, PaymentAllocation.payment_id == Payment.id)
        .filter(PaymentAllocation.invoice_id == invoice.id)
        .scalar()
    )
    invoice.last_payment_date = last


def refresh_sale(sale: Sale) -> None:
    if sale.sale_type != SALE_CREDIT:
        return
    if sale.payment_status == STATUS_PENDING and sale.amount_remaining <= 0:
        sale.payment_status = STATUS_COMPLETED
    elif sale.payment_status == STATUS_COMPLETED and sale.amount_remaining > 0:
        sale.payment_status = STATUS_PENDING


def _refresh_targets(invoice_ids, sale_ids) -> None:
    db.session.flush()
    for invoice_id in set(invoice_ids):
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is not None:
            refresh_invoice(invoice)
    for sale_id in set(sale_ids):
        sale = db.session.get(Sale, sale_id)
        if sale is not None:
            refresh_sale(sale)


def _write_allocations(payment: Payment, items) -> list:
    rows = []
    for item in items:
        if item.allocated_amount <= 0:
            continue
        row = PaymentAllocation(
            customer_id=payment.customer_id,
            target_type=item.type,
            invoice_id=item.target_id if item.type == TARGET_INVOICE else None,
            sale_id=item.target_id if item.type == TARGET_SALE else None,
            amount=item.allocated_amount,
        )
        payment.allocations.append(row)
        rows.append(row)
    _refresh_targets(
        [r.invoice_id for r in rows if r.invoice_id],
        [r.sale_id for r in rows if r.sale_id],
    )
    return rows


def _apply_requested(items, allocations) -> None:
    for alloc in allocations:
        if alloc.get("type") not in ALLOCATION_TARGETS + ("sales",):
            raise ValidationError(f"Unknown allocation type: {alloc.get('type')}")
        set_item_amount(items, item_key(alloc["type"], alloc.get("id")), alloc.get("amount"))


# ── Operations ───────────────────────────────────────────────────────────────

def _record_payment(customer_id, amount, payment_date=None, payment_method="cash",
                    period_start=None, period_end=None, notes=None,
                    allocations=None, auto=False) -> dict:
    amount = round_money(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")
    if db.session.get(Customer, customer_id) is None:
        raise NotFoundError("Customer not found")

    items = load_allocation_items(customer_id)
    if auto:
        auto_allocate(items, amount)
    elif allocations:
        _apply_requested(items, allocations)
    summary = summarize(items, amount)
    warning = check_overallocation(summary["total_allocated"], amount)

    with unit_of_work():
        payment = Payment(
            customer_id=customer_id,
            amount=amount,
            payment_date=payment_date or business_today(),
            payment_method=payment_method or "cash",
            period_start=period_start,
            period_end=period_end,
            notes=notes or "",
        )
        db.session.add(payment)
        _write_allocations(payment, items)
        db.session.flush()
        log_audit("created", "payment", payment.id,
                  f"{amount:.2f}; allocated {summary['total_allocated']:.2f}")

    logger.info("Payment %s recorded: %.2f, allocated %.2f",
                payment.id, amount, summary["total_allocated"])
    result = {
        "payment": payment.to_dict(),
        "total_allocated": summary["total_allocated"],
        "unapplied_amount": payment.amount_unapplied,
    }
    if warning:
        result["warning"] = warning
    return result


@server_action
def record_payment(customer_id, amount, payment_date=None, payment_method="cash",
                   period_start=None, period_end=None, notes=None,
                   allocations=None, auto_allocate=False) -> dict:
    return _record_payment(customer_id, amount, payment_date, payment_method,
                           period_start, period_end, notes, allocations, auto_allocate)


@server_action
def allocate_unapplied(payment_id, allocations=None) -> dict:
    """Apply a payment's remaining credit; auto-allocates when no allocations are given."""
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    available = payment.amount_unapplied
    if available <= 0:
        raise ValidationError("Payment has no unapplied credit")

    items = load_allocation_items(payment.customer_id)
    if allocations:
        _apply_requested(items, allocations)
    else:
        auto_allocate(items, available)
    summary = summarize(items, available)
    if summary["total_allocated"] <= 0:
        raise ValidationError("Nothing to allocate")
    warning = check_overallocation(summary["total_allocated"], available)

    with unit_of_work():
        _write_allocations(payment, items)
        log_audit("allocated", "payment", payment.id, f"{summary['total_allocated']:.2f} of credit")

    logger.info("Allocated %.2f of credit from payment %s", summary["total_allocated"], payment.id)
    result = {
        "payment": payment.to_dict(),
        "total_allocated": summary["total_allocated"],
        "unapplied_amount": payment.amount_unapplied,
    }
    if warning:
        result["warning"] = warning
    return result


@server_action
def delete_payment(payment_id) -> dict:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    invoice_ids = [a.invoice_id for a in payment.allocations if a.invoice_id]
    sale_ids = [a.sale_id for a in payment.allocations if a.sale_id]

    with unit_of_work():
        log_audit("deleted", "payment", payment.id, f"{payment.amount:.2f}")
        db.session.delete(payment)
        _refresh_targets(invoice_ids, sale_ids)

    logger.info("Deleted payment %s (%d invoices, %d sales refreshed)",
                payment_id, len(set(invoice_ids)), len(set(sale_ids)))
    return {"message": "Payment deleted"}


@server_action
def create_bulk_payments(rows) -> dict:
    rows = list(rows or [])
    if not rows:
        raise ValidationError("At least one payment is required")

    processed, errors = 0, []
    for index, row in enumerate(rows):
        row = dict(row)
        row.setdefault("payment_date", business_today().isoformat())
        form = PaymentForm(formdata=to_formdata(row), meta={"csrf": False})
        if not form.validate():
            errors.append({"index": index, "error": form_errors(form)})
            continue
        result = record_payment(
            form.customer_id.data,
            float(form.amount.data),
            form.payment_date.data,
            form.payment_method.data,
            form.period_start.data,
            form.period_end.data,
            form.notes.data,
            allocations=row.get("allocations"),
            auto_allocate=bool(row.get("auto_allocate")),
        )
        if result["success"]:
            processed += 1
        else:
            errors.append({"index": index, "error": result["error"]})

    logger.info("Bulk payments: %d of %d saved", processed, len(rows))
    return {"success": not errors, "processed": processed, "total": len(rows), "errors": errors}


def list_payments(customer_id=None, date_from=None, date_to=None) -> list:
    query = Payment.query
    if customer_id:
        query = query.filter(Payment.customer_id == customer_id)
    if date_from:
        query = query.filter(Payment.payment_date >= parse_date(date_from))
    if date_to:
        query = query.filter(Payment.payment_date <= parse_date(date_to))
    return query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()
