"""
Outstanding balances.

`compute_balances` is the single source of the outstanding figures; the
customer view, the dashboard and the dated report all read from it, so
they always agree. The report adds a transaction-level ledger for the
requested window on top of those figures.
"""
import logging
from collections import defaultdict

from flask import current_app

from dairyflow.extensions import db
from dairyflow.models.customer import Customer
from dairyflow.models.delivery import Delivery
from dairyflow.models.invoice import Invoice, INVOICE_PAID
from dairyflow.models.payment import Payment, PaymentAllocation, TARGET_INVOICE, TARGET_OPENING_BALANCE
from dairyflow.models.sale import Sale, SALE_CREDIT
from dairyflow.services.errors import NotFoundError, ValidationError, server_action
from dairyflow.utils.dates import business_today, month_key, month_label
from dairyflow.utils.helpers import round_money
from dairyflow.utils.sorting import sort_rows

logger = logging.getLogger(__name__)

REPORT_SORT_KEYS = (
    "customer.billing_name",
    "opening_balance",
    "subscription_amount",
    "manual_sales_amount",
    "payments_amount",
    "total_outstanding",
)


# ── Canonical computation ────────────────────────────────────────────────────

def _allocation_totals(*filters, group_by):
    rows = (
        db.session.query(group_by, db.func.coalesce(db.func.sum(PaymentAllocation.amount), 0.0))
        .filter(*filters)
        .group_by(group_by)
        .all()
    )
    return {key: float(total) for key, total in rows}


def invoice_allocation_totals(invoice_ids=None) -> dict:
    filters = [PaymentAllocation.target_type == TARGET_INVOICE]
    if invoice_ids is not None:
        filters.append(PaymentAllocation.invoice_id.in_(invoice_ids))
    return _allocation_totals(*filters, group_by=PaymentAllocation.invoice_id)


def invoice_outstanding_amount(invoice, allocated=None) -> float:
    if invoice.status == INVOICE_PAID:
        return 0.0
    if allocated is None:
        allocated = invoice.amount_allocated
    return max(0.0, round_money(invoice.total_amount - allocated))


def payment_unapplied_amounts(customer_ids=None) -> list:
    """[(Payment, unapplied)] for payments with money not yet allocated."""
    applied = (
        db.session.query(
            PaymentAllocation.payment_id.label("payment_id"),
            db.func.sum(PaymentAllocation.amount).label("applied"),
        )
        .group_by(PaymentAllocation.payment_id)
        .subquery()
    )
    query = (
        db.session.query(Payment, db.func.coalesce(applied.c.applied, 0.0))
        .outerjoin(applied, applied.c.payment_id == Payment.id)
    )
    if customer_ids is not None:
        query = query.filter(Payment.customer_id.in_(customer_ids))
    result = []
    for payment, total_applied in query.order_by(Payment.payment_date, Payment.id).all():
        unapplied = round_money(payment.amount - float(total_applied))
        if unapplied > 0:
            result.append((payment, unapplied))
    return result


def _empty_balance(customer) -> dict:
    opening = round_money(customer.opening_balance)
    return {
        "customer": customer,
        "opening_balance": opening,
        "effective_opening_balance": opening,
        "invoice_outstanding": 0.0,
        "total_outstanding": 0.0,
        "unapplied_credit": 0.0,
        "credit_count": 0,
        "net_outstanding": 0.0,
        "unpaid_invoice_count": 0,
        "oldest_unpaid_date": None,
    }


def compute_balances(customer_ids=None) -> dict:
    """{customer_id: balance dict} for the given customers (all when None)."""
    query = Customer.query
    if customer_ids is not None:
        query = query.filter(Customer.id.in_(list(customer_ids)))
    balances = {c.id: _empty_balance(c) for c in query.order_by(Customer.billing_name).all()}
    if not balances:
        return balances
    ids = list(balances)

    opening_paid = _allocation_totals(
        PaymentAllocation.target_type == TARGET_OPENING_BALANCE,
        PaymentAllocation.customer_id.in_(ids),
        group_by=PaymentAllocation.customer_id,
    )
    for customer_id, paid in opening_paid.items():
        row = balances[customer_id]
        row["effective_opening_balance"] = max(0.0, round_money(row["opening_balance"] - paid))

    unpaid = (
        Invoice.query
        .filter(Invoice.customer_id.in_(ids), Invoice.status != INVOICE_PAID)
        .order_by(Invoice.invoice_date, Invoice.id)
        .all()
    )
    allocated = invoice_allocation_totals([i.id for i in unpaid])
    for invoice in unpaid:
        outstanding = invoice_outstanding_amount(invoice, allocated.get(invoice.id, 0.0))
        if outstanding <= 0:
            continue
        row = balances[invoice.customer_id]
        row["invoice_outstanding"] = round_money(row["invoice_outstanding"] + outstanding)
        row["unpaid_invoice_count"] += 1
        if row["oldest_unpaid_date"] is None:
            row["oldest_unpaid_date"] = invoice.invoice_date

    for payment, unapplied in payment_unapplied_amounts(ids):
        row = balances[payment.customer_id]
        row["unapplied_credit"] = round_money(row["unapplied_credit"] + unapplied)
        row["credit_count"] += 1

    for row in balances.values():
        row["total_outstanding"] = round_money(row["effective_opening_balance"] + row["invoice_outstanding"])
        row["net_outstanding"] = round_money(row["total_outstanding"] - row["unapplied_credit"])
    return balances


def customer_balance(customer_id) -> dict:
    balances = compute_balances([customer_id])
    if customer_id not in balances:
        raise NotFoundError("Customer not found")
    return balances[customer_id]


def serialize_balance(row: dict) -> dict:
    data = {k: v for k, v in row.items() if k != "customer"}
    data["customer"] = row["customer"].to_dict()
    if data["oldest_unpaid_date"] is not None:
        data["oldest_unpaid_date"] = data["oldest_unpaid_date"].isoformat()
    return data


# ── Customer / dashboard views ───────────────────────────────────────────────

def unpaid_invoices(customer_id) -> list:
    invoices = (
        Invoice.query
        .filter(Invoice.customer_id == customer_id, Invoice.status != INVOICE_PAID)
        .order_by(Invoice.invoice_date, Invoice.id)
        .all()
    )
    allocated = invoice_allocation_totals([i.id for i in invoices])
    rows = []
    for invoice in invoices:
        outstanding = invoice_outstanding_amount(invoice, allocated.get(invoice.id, 0.0))
        if outstanding > 0:
            data = invoice.to_dict()
            data["amount_outstanding"] = outstanding
            data["amount_paid"] = round_money(invoice.total_amount - outstanding)
            rows.append(data)
    return rows


@server_action
def get_customer_outstanding(customer_id) -> dict:
    balance = customer_balance(customer_id)
    result = serialize_balance(balance)
    result["unpaid_invoices"] = unpaid_invoices(customer_id)
    return result


@server_action
def get_outstanding_dashboard(today=None) -> dict:
    today = today or business_today()
    balances = compute_balances()
    customers = sorted(
        (row for row in balances.values() if row["total_outstanding"] > 0),
        key=lambda row: row["total_outstanding"],
        reverse=True,
    )

    overdue = (
        Invoice.query
        .filter(Invoice.status != INVOICE_PAID, Invoice.due_date < today)
        .order_by(Invoice.due_date)
        .all()
    )
    allocated = invoice_allocation_totals([i.id for i in overdue])
    overdue_rows = []
    for invoice in overdue:
        outstanding = invoice_outstanding_amount(invoice, allocated.get(invoice.id, 0.0))
        if outstanding > 0:
            data = invoice.to_dict()
            data["amount_outstanding"] = outstanding
            data["days_overdue"] = (today - invoice.due_date).days
            overdue_rows.append(data)

    total = round_money(sum(row["total_outstanding"] for row in customers))
    rows = []
    for row in customers:
        data = serialize_balance(row)
        data["credit_amount"] = row["unapplied_credit"]
        data["has_credit"] = row["unapplied_credit"] > 0
        rows.append(data)
    return {
        "customers": rows,
        "total_outstanding": total,
        "customers_with_outstanding": len(customers),
        "overdue_invoices": overdue_rows,
        "average_outstanding": round_money(total / len(customers)) if customers else 0.0,
    }


def validate_outstanding(customer_id) -> dict:
    """Sanity checks on a customer's figures before they are shown or printed."""
    balance = customer_balance(customer_id)
    limit = current_app.config.get("MAX_REASONABLE_OUTSTANDING", 1000000)
    warnings = []
    if balance["total_outstanding"] < 0:
        warnings.append("Outstanding amount is negative")
    if balance["total_outstanding"] > limit:
        warnings.append(
            f"Outstanding amount ({balance['total_outstanding']:,.2f}) exceeds reasonable limit ({limit:,.2f})"
        )
    expected = round_money(balance["effective_opening_balance"] + balance["invoice_outstanding"])
    if expected != balance["total_outstanding"]:
        warnings.append("Outstanding calculation breakdown validation failed")
    return {
        "is_valid": not warnings,
        "amount": balance["total_outstanding"],
        "warnings": warnings,
        "requires_review": bool(warnings),
    }


# ── Unapplied payments ───────────────────────────────────────────────────────

def unapplied_payments(customer_id=None) -> list:
    ids = [customer_id] if customer_id is not None else None
    return [
        {
            "payment_id": payment.id,
            "customer_id": payment.customer_id,
            "customer_name": payment.customer.billing_name,
            "payment_date": payment.payment_date.isoformat(),
            "payment_amount": payment.amount,
            "amount_unapplied": unapplied,
            "payment_method": payment.payment_method,
            "notes": payment.notes,
        }
        for payment, unapplied in payment_unapplied_amounts(ids)
    ]


def unapplied_payment_stats() -> dict:
    rows = payment_unapplied_amounts()
    return {
        "total_amount": round_money(sum(u for _, u in rows)),
        "total_count": len(rows),
        "customers_count": len({p.customer_id for p, _ in rows}),
    }


# ── Dated report ─────────────────────────────────────────────────────────────

def _subscription_breakdown(customer_ids, start_date, end_date) -> dict:
    deliveries = (
        Delivery.query
        .filter(
            Delivery.customer_id.in_(customer_ids),
            Delivery.delivery_status == "delivered",
            Delivery.order_date >= start_date,
            Delivery.order_date <= end_date,
        )
        .order_by(Delivery.order_date)
        .all()
    )
    # customer -> month -> product -> accumulator
    tree = defaultdict(lambda: defaultdict(dict))
    for d in deliveries:
        bucket = tree[d.customer_id][month_key(d.order_date)]
        product = bucket.setdefault(d.product_id, {
            "product_name": d.product.name,
            "product_code": d.product.code,
            "unit_of_measure": d.product.unit_of_measure,
            "unit_price": d.unit_price,
            "quantity": 0.0,
            "total_amount": 0.0,
            "_days": set(),
        })
        product["quantity"] += d.actual_quantity
        product["total_amount"] = round_money(product["total_amount"] + d.actual_quantity * d.unit_price)
        product["_days"].add(d.order_date)

    result = {}
    for customer_id, months in tree.items():
        breakdown = []
        for key in sorted(months):
            details = []
            for product in months[key].values():
                days = len(product.pop("_days"))
                product["delivery_days"] = days
                product["daily_quantity"] = round(product["quantity"] / days, 3) if days else 0.0
                details.append(product)
            breakdown.append({
                "month": key,
                "month_display": month_label(key),
                "total_amount": round_money(sum(p["total_amount"] for p in details)),
                "product_details": sorted(details, key=lambda p: p["product_name"]),
            })
        result[customer_id] = breakdown
    return result


def _manual_sales_breakdown(customer_ids, start_date, end_date) -> dict:
    sales = (
        Sale.query
        .filter(
            Sale.customer_id.in_(customer_ids),
            Sale.sale_type == SALE_CREDIT,
            Sale.sale_date >= start_date,
            Sale.sale_date <= end_date,
        )
        .order_by(Sale.sale_date, Sale.id)
        .all()
    )
    result = defaultdict(list)
    for s in sales:
        result[s.customer_id].append({
            "sale_id": s.id,
            "product_name": s.product.name,
            "product_code": s.product.code,
            "quantity": s.quantity,
            "unit_price": s.unit_price,
            "total_amount": s.total_amount,
            "gst_amount": s.gst_amount,
            "unit_of_measure": s.product.unit_of_measure,
            "sale_date": s.sale_date.isoformat(),
            "payment_status": s.payment_status,
            "notes": s.notes,
        })
    return result


def _payment_breakdown(customer_ids, start_date, end_date) -> dict:
    payments = (
        Payment.query
        .filter(
            Payment.customer_id.in_(customer_ids),
            Payment.payment_date >= start_date,
            Payment.payment_date <= end_date,
        )
        .order_by(Payment.payment_date, Payment.id)
        .all()
    )
    result = defaultdict(list)
    for p in payments:
        result[p.customer_id].append({
            "payment_id": p.id,
            "amount": p.amount,
            "payment_date": p.payment_date.isoformat(),
            "payment_method": p.payment_method,
            "notes": p.notes,
            "period_start": p.period_start.isoformat() if p.period_start else None,
            "period_end": p.period_end.isoformat() if p.period_end else None,
        })
    return result


def _invoice_breakdown(customer_ids, start_date, end_date) -> dict:
    invoices = (
        Invoice.query
        .filter(
            Invoice.customer_id.in_(customer_ids),
            Invoice.invoice_date >= start_date,
            Invoice.invoice_date <= end_date,
        )
        .order_by(Invoice.invoice_date, Invoice.id)
        .all()
    )
    result = defaultdict(list)
    for inv in invoices:
        payment_dates = sorted({a.payment.payment_date.isoformat() for a in inv.allocations})
        result[inv.customer_id].append({
            "invoice_id": inv.id,
            "invoice_number": inv.invoice_number,
            "invoice_date": inv.invoice_date.isoformat(),
            "total_amount": inv.total_amount,
            "invoice_status": inv.status,
            "payment_dates": payment_dates,
        })
    return result


def _selected(row, selection, selected_ids) -> bool:
    if selection == "selected":
        return row["customer"]["id"] in selected_ids
    if selection == "with_outstanding":
        return row["total_outstanding"] > 0
    if selection == "with_subscription_and_outstanding":
        return row["subscription_amount"] > 0 and row["total_outstanding"] > 0
    if selection == "with_credit":
        return row["unapplied_credit"] > 0
    if selection == "with_any_balance":
        return row["total_outstanding"] > 0 or row["unapplied_credit"] > 0
    return True


def summarize_report(rows) -> dict:
    total_outstanding = round_money(sum(r["total_outstanding"] for r in rows))
    total_unapplied = round_money(sum(r["unapplied_credit"] for r in rows))
    return {
        "total_customers": len(rows),
        "customers_with_outstanding": sum(1 for r in rows if r["total_outstanding"] > 0),
        "total_opening_balance": round_money(sum(r["opening_balance"] for r in rows)),
        "total_subscription_amount": round_money(sum(r["subscription_amount"] for r in rows)),
        "total_manual_sales_amount": round_money(sum(r["manual_sales_amount"] for r in rows)),
        "total_payments_amount": round_money(sum(r["payments_amount"] for r in rows)),
        "total_unapplied_payments_amount": total_unapplied,
        "total_outstanding_amount": total_outstanding,
        "net_outstanding_amount": round_money(total_outstanding - total_unapplied),
    }


def sort_report_customers(customers, sort_key="customer.billing_name", direction="asc") -> list:
    if sort_key not in REPORT_SORT_KEYS:
        raise ValidationError(f"Unknown sort key: {sort_key}")
    return sort_rows(customers, sort_key, direction)


@server_action
def generate_outstanding_report(config: dict) -> dict:
    start_date, end_date = config["start_date"], config["end_date"]
    if end_date < start_date:
        raise ValidationError("End date must be after or equal to start date")
    selection = config.get("customer_selection", "all")
    selected_ids = set(config.get("selected_customer_ids") or [])

    balances = compute_balances(selected_ids if selection == "selected" else None)
    ids = list(balances)
    subscriptions = _subscription_breakdown(ids, start_date, end_date) if ids else {}
    sales = _manual_sales_breakdown(ids, start_date, end_date) if ids else {}
    payments = _payment_breakdown(ids, start_date, end_date) if ids else {}
    invoices = _invoice_breakdown(ids, start_date, end_date) if ids else {}
    unapplied = defaultdict(list)
    if ids:
        for payment, amount in payment_unapplied_amounts(ids):
            unapplied[payment.customer_id].append({
                "payment_id": payment.id,
                "payment_date": payment.payment_date.isoformat(),
                "payment_amount": payment.amount,
                "amount_unapplied": amount,
                "payment_method": payment.payment_method,
                "notes": payment.notes,
            })

    rows = []
    for customer_id, balance in balances.items():
        row = serialize_balance(balance)
        sub_rows = subscriptions.get(customer_id, [])
        sale_rows = sales.get(customer_id, [])
        pay_rows = payments.get(customer_id, [])
        row.update({
            "subscription_breakdown": sub_rows,
            "subscription_amount": round_money(sum(m["total_amount"] for m in sub_rows)),
            "manual_sales_breakdown": {
                "total_amount": round_money(sum(s["total_amount"] for s in sale_rows)),
                "sale_details": sale_rows,
            },
            "manual_sales_amount": round_money(sum(s["total_amount"] for s in sale_rows)),
            "payment_breakdown": {
                "total_amount": round_money(sum(p["amount"] for p in pay_rows)),
                "payment_details": pay_rows,
            },
            "payments_amount": round_money(sum(p["amount"] for p in pay_rows)),
            "invoice_breakdown": {"invoice_details": invoices.get(customer_id, [])},
            "unapplied_payments_breakdown": {
                "total_amount": balance["unapplied_credit"],
                "unapplied_payment_details": unapplied.get(customer_id, []),
            },
        })
        if _selected(row, selection, selected_ids):
            rows.append(row)

    rows = sort_report_customers(
        rows, config.get("sort_key") or "customer.billing_name", config.get("sort_direction") or "asc"
    )
    logger.info("Outstanding report %s..%s: %d customers", start_date, end_date, len(rows))
    return {"customers": rows, "summary": summarize_report(rows)}
