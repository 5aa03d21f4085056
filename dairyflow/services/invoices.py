"""
Invoice generation and deletion.

An invoice bills a customer's unbilled deliveries and pending credit
sales for a period. Each delivery and sale gets its own line, so a line's
presence is what marks the source as billed.
"""
import logging
from datetime import timedelta

from dairyflow.extensions import db
from dairyflow.models.customer import Customer
from dairyflow.models.delivery import Delivery
from dairyflow.models.invoice import (
    Invoice, InvoiceLine, INVOICE_GENERATED, INVOICE_PAID, INVOICE_SENT,
    LINE_MANUAL_SALE, LINE_SUBSCRIPTION,
)
from dairyflow.models.payment import PaymentAllocation, TARGET_INVOICE, TARGET_SALE
from dairyflow.models.sale import Sale, SALE_CREDIT, STATUS_BILLED, STATUS_PENDING
from dairyflow.services.allocation import refresh_invoice
from dairyflow.services.errors import (
    ConflictError, DairyFlowError, NotFoundError, ValidationError, server_action,
)
from dairyflow.services.transaction import savepoint, unit_of_work
from dairyflow.utils.dates import business_today, financial_year_prefix
from dairyflow.utils.helpers import log_audit, round_money
from dairyflow.utils.settings import get_setting

logger = logging.getLogger(__name__)


# ── Numbering ────────────────────────────────────────────────────────────────

def next_invoice_number(invoice_date) -> str:
    """YYYYYY + 5-digit sequence within the April–March financial year."""
    prefix = financial_year_prefix(invoice_date)
    last = (
        Invoice.query
        .filter(Invoice.invoice_number.like(f"{prefix}%"))
        .order_by(Invoice.invoice_number.desc())
        .first()
    )
    seq = 1
    if last:
        try:
            seq = int(last.invoice_number[len(prefix):]) + 1
        except ValueError:
            seq = Invoice.query.filter(Invoice.invoice_number.like(f"{prefix}%")).count() + 1
    return f"{prefix}{seq:05d}"


def parse_invoice_number(invoice_number: str) -> dict:
    year, seq = invoice_number[:6], invoice_number[6:]
    return {"financial_year": f"{year[:4]}-{year[4:]}", "sequence": int(seq)}


# ── Unbilled sources ─────────────────────────────────────────────────────────

def unbilled_deliveries(customer_id, period_start, period_end) -> list:
    billed = db.select(InvoiceLine.delivery_id).where(InvoiceLine.delivery_id.isnot(None))
    return (
        Delivery.query
        .filter(
            Delivery.customer_id == customer_id,
            Delivery.delivery_status == "delivered",
            Delivery.order_date >= period_start,
            Delivery.order_date <= period_end,
            Delivery.id.notin_(billed),
        )
        .order_by(Delivery.order_date, Delivery.id)
        .all()
    )


def unbilled_credit_sales(customer_id, period_start, period_end) -> list:
    return (
        Sale.query
        .filter(
            Sale.customer_id == customer_id,
            Sale.sale_type == SALE_CREDIT,
            Sale.payment_status == STATUS_PENDING,
            Sale.sale_date >= period_start,
            Sale.sale_date <= period_end,
        )
        .order_by(Sale.sale_date, Sale.id)
        .all()
    )


def _overlapping_invoice(customer_id, period_start, period_end):
    return Invoice.query.filter(
        Invoice.customer_id == customer_id,
        Invoice.period_start <= period_end,
        Invoice.period_end >= period_start,
    ).first()


def preview_invoice(customer_id, period_start, period_end) -> dict:
    deliveries = unbilled_deliveries(customer_id, period_start, period_end)
    sales = unbilled_credit_sales(customer_id, period_start, period_end)
    existing = _overlapping_invoice(customer_id, period_start, period_end)
    subscription_amount = round_money(sum(d.actual_quantity * d.unit_price for d in deliveries))
    sales_amount = round_money(sum(s.total_amount for s in sales))
    return {
        "customer_id": customer_id,
        "subscription_amount": subscription_amount,
        "credit_sales_amount": sales_amount,
        "total_amount": round_money(subscription_amount + sales_amount),
        "delivery_count": len(deliveries),
        "sale_count": len(sales),
        "has_existing_invoice": existing is not None,
        "existing_invoice_number": existing.invoice_number if existing else None,
    }


def preview_bulk_invoices(period_start, period_end, customer_selection="all",
                          selected_customer_ids=None) -> list:
    query = Customer.query
    if customer_selection == "selected":
        query = query.filter(Customer.id.in_(selected_customer_ids or []))
    rows = []
    for customer in query.order_by(Customer.billing_name).all():
        row = preview_invoice(customer.id, period_start, period_end)
        row["customer_name"] = customer.billing_name
        if customer_selection == "with_unbilled_deliveries" and row["subscription_amount"] <= 0:
            continue
        if customer_selection == "with_unbilled_credit_sales" and row["credit_sales_amount"] <= 0:
            continue
        if customer_selection == "with_unbilled_transactions" and row["total_amount"] <= 0:
            continue
        rows.append(row)
    return rows


# ── Generation ───────────────────────────────────────────────────────────────

def _carry_sale_allocations(invoice, sales) -> int:
    """Part-payments on billed sales now count against the invoice; sale_id is kept."""
    moved = 0
    for sale in sales:
        for alloc in sale.allocations.filter_by(target_type=TARGET_SALE).all():
            alloc.target_type = TARGET_INVOICE
            alloc.invoice_id = invoice.id
            moved += 1
    if moved:
        db.session.flush()
    return moved


def _create_invoice(customer_id, period_start, period_end, invoice_date=None) -> Invoice:
    if period_end < period_start:
        raise ValidationError("Period end date must be after or equal to period start date")
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")

    existing = _overlapping_invoice(customer.id, period_start, period_end)
    if existing is not None:
        raise ConflictError(
            f"Invoice {existing.invoice_number} already covers this period for {customer.billing_name}"
        )

    deliveries = unbilled_deliveries(customer.id, period_start, period_end)
    sales = unbilled_credit_sales(customer.id, period_start, period_end)
    if not deliveries and not sales:
        raise ValidationError(f"Nothing to bill for {customer.billing_name} in this period")

    invoice_date = invoice_date or business_today()
    invoice = Invoice(
        invoice_number=next_invoice_number(invoice_date),
        customer_id=customer.id,
        invoice_date=invoice_date,
        due_date=invoice_date + timedelta(days=int(get_setting("invoice_due_days", 15))),
        period_start=period_start,
        period_end=period_end,
        status=INVOICE_GENERATED,
    )
    for d in deliveries:
        invoice.line_items.append(InvoiceLine(
            line_type=LINE_SUBSCRIPTION,
            delivery_id=d.id,
            product_name=d.product.name,
            quantity=d.actual_quantity,
            unit_price=d.unit_price,
            line_total=round_money(d.actual_quantity * d.unit_price),
        ))
    for s in sales:
        invoice.line_items.append(InvoiceLine(
            line_type=LINE_MANUAL_SALE,
            sale_id=s.id,
            product_name=s.product.name,
            quantity=s.quantity,
            unit_price=s.unit_price,
            line_total=s.total_amount,
            gst_amount=s.gst_amount,
        ))
        s.payment_status = STATUS_BILLED

    invoice.subscription_amount = round_money(
        sum(l.line_total for l in invoice.line_items if l.line_type == LINE_SUBSCRIPTION)
    )
    invoice.manual_sales_amount = round_money(sum(s.total_amount for s in sales))
    invoice.gst_amount = round_money(sum(s.gst_amount for s in sales))
    invoice.total_amount = round_money(invoice.subscription_amount + invoice.manual_sales_amount)
    invoice.amount_paid = 0.0
    invoice.amount_outstanding = invoice.total_amount

    db.session.add(invoice)
    db.session.flush()
    if _carry_sale_allocations(invoice, sales):
        refresh_invoice(invoice)
    log_audit("generated", "invoice", invoice.id,
              f"{invoice.invoice_number} for {customer.billing_name}: {invoice.total_amount:.2f}")
    return invoice


@server_action
def generate_invoice(customer_id, period_start, period_end, invoice_date=None) -> dict:
    with unit_of_work():
        invoice = _create_invoice(customer_id, period_start, period_end, invoice_date)
    logger.info("Generated invoice %s (%.2f)", invoice.invoice_number, invoice.total_amount)
    return {"invoice": invoice.to_dict()}


@server_action
def generate_bulk_invoices(customer_ids, period_start, period_end, invoice_date=None) -> dict:
    """One invoice per customer; a failing customer does not stop the rest."""
    numbers, errors = [], []
    with unit_of_work():
        for customer_id in customer_ids or []:
            try:
                with savepoint():
                    numbers.append(
                        _create_invoice(customer_id, period_start, period_end, invoice_date).invoice_number
                    )
            except DairyFlowError as exc:
                errors.append({"customer_id": customer_id, "error": exc.message})
    logger.info("Bulk invoices: %d generated, %d failed", len(numbers), len(errors))
    return {"successful": len(numbers), "invoice_numbers": numbers, "errors": errors}


# ── Queries ──────────────────────────────────────────────────────────────────

def list_invoices(customer_id=None, status=None, date_from=None, date_to=None) -> list:
    query = Invoice.query
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if status:
        query = query.filter(Invoice.status == status)
    if date_from:
        query = query.filter(Invoice.invoice_date >= date_from)
    if date_to:
        query = query.filter(Invoice.invoice_date <= date_to)
    return query.order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc()).all()


def invoice_stats(today=None) -> dict:
    today = today or business_today()
    month_start = today.replace(day=1)
    unpaid = Invoice.query.filter(Invoice.status != INVOICE_PAID).all()
    return {
        "invoices_this_month": Invoice.query.filter(
            Invoice.invoice_date >= month_start, Invoice.invoice_date <= today
        ).count(),
        "unpaid_count": len(unpaid),
        "unpaid_total": round_money(sum(i.amount_outstanding for i in unpaid)),
    }


@server_action
def mark_invoice_sent(invoice_id) -> dict:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    if invoice.status == INVOICE_PAID:
        raise ConflictError("Invoice is already paid")
    with unit_of_work():
        invoice.status = INVOICE_SENT
        log_audit("sent", "invoice", invoice.id, invoice.invoice_number)
    return {"invoice": invoice.to_dict()}


# ── Deletion ─────────────────────────────────────────────────────────────────

def _remove_invoice(invoice_id) -> int:
    """Delete one invoice inside the caller's transaction; returns reverted sale count."""
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    if invoice.status == INVOICE_PAID:
        raise ConflictError(f"Cannot delete paid invoices ({invoice.invoice_number})")
    if invoice.allocations.filter(PaymentAllocation.sale_id.is_(None)).count():
        raise ConflictError(
            f"Invoice {invoice.invoice_number} has payments allocated to it. Remove the payments first."
        )
    for alloc in invoice.allocations.filter(PaymentAllocation.sale_id.isnot(None)).all():
        alloc.target_type = TARGET_SALE
        alloc.invoice_id = None

    sale_ids = [l.sale_id for l in invoice.line_items if l.sale_id]
    reverted = 0
    if sale_ids:
        reverted = Sale.query.filter(
            Sale.id.in_(sale_ids), Sale.payment_status == STATUS_BILLED
        ).update({Sale.payment_status: STATUS_PENDING}, synchronize_session="fetch")
    log_audit("deleted", "invoice", invoice.id,
              f"{invoice.invoice_number}; {reverted} sales reverted to Pending")
    db.session.delete(invoice)
    db.session.flush()
    return reverted


@server_action
def delete_invoice(invoice_id) -> dict:
    with unit_of_work():
        reverted = _remove_invoice(invoice_id)
    logger.info("Deleted invoice %s, reverted %d sales", invoice_id, reverted)
    return {"message": f"Invoice deleted. {reverted} sales reverted to Pending.",
            "reverted_sales": reverted}


@server_action
def bulk_delete_invoices(invoice_ids, atomic: bool = False) -> dict:
    """
    Non-atomic (default): each invoice is deleted in its own savepoint and
    failures are reported per invoice. Atomic: the first failure undoes the batch.
    """
    try:
        invoice_ids = list(dict.fromkeys(int(i) for i in (invoice_ids or [])))
    except (TypeError, ValueError):
        raise ValidationError("Invoice ids must be whole numbers")
    if not invoice_ids:
        raise ValidationError("No invoices selected for deletion")

    successful, errors, messages = 0, [], []
    total_reverted = 0
    if atomic:
        with unit_of_work():
            for invoice_id in invoice_ids:
                total_reverted += _remove_invoice(invoice_id)
                successful += 1
    else:
        with unit_of_work():
            for invoice_id in invoice_ids:
                try:
                    with savepoint():
                        reverted = _remove_invoice(invoice_id)
                except DairyFlowError as exc:
                    errors.append(exc.message)
                    continue
                successful += 1
                total_reverted += reverted
                messages.append(f"Invoice {invoice_id} deleted ({reverted} sales reverted)")

    logger.info("Bulk invoice delete: %d ok, %d failed", successful, len(errors))
    return {
        "successful": successful,
        "failed": len(errors),
        "errors": errors,
        "messages": messages,
        "total_reverted_sales": total_reverted,
    }
