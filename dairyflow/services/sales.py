"""
Manual (counter) sales. Cash and QR sales settle immediately; credit
sales stay Pending until they are invoiced or paid.
"""
import logging

from dairyflow.extensions import db
from dairyflow.forms.sale_form import SaleForm
from dairyflow.models.customer import Customer
from dairyflow.models.product import Product
from dairyflow.models.sale import Sale, SALE_CREDIT, STATUS_BILLED, STATUS_COMPLETED, STATUS_PENDING
from dairyflow.services.errors import ConflictError, NotFoundError, ValidationError, server_action
from dairyflow.services.transaction import unit_of_work
from dairyflow.utils.dates import business_today
from dairyflow.utils.gst import gst_from_inclusive
from dairyflow.utils.helpers import form_errors, log_audit, round_money, to_formdata

logger = logging.getLogger(__name__)


def _validated_form(data: dict) -> SaleForm:
    data = dict(data or {})
    data.setdefault("sale_date", business_today().isoformat())
    form = SaleForm(formdata=to_formdata(data), meta={"csrf": False})
    if not form.validate():
        raise ValidationError(form_errors(form), fields=form.errors)
    return form


def _build_sale(form: SaleForm) -> Sale:
    product = db.session.get(Product, form.product_id.data)
    if product is None:
        raise NotFoundError("Product not found")
    customer_id = form.customer_id.data or None
    if customer_id is not None and db.session.get(Customer, customer_id) is None:
        raise NotFoundError("Customer not found")

    quantity = float(form.quantity.data)
    unit_price = float(form.unit_price.data)
    total = round_money(quantity * unit_price)
    sale_type = form.sale_type.data
    return Sale(
        customer_id=customer_id,
        product_id=product.id,
        quantity=quantity,
        unit_price=unit_price,
        total_amount=total,
        gst_amount=gst_from_inclusive(total, product.gst_rate),
        sale_type=sale_type,
        sale_date=form.sale_date.data,
        payment_status=STATUS_PENDING if sale_type == SALE_CREDIT else STATUS_COMPLETED,
        notes=form.notes.data or "",
    )


@server_action
def create_sale(data: dict) -> dict:
    form = _validated_form(data)
    with unit_of_work():
        sale = _build_sale(form)
        db.session.add(sale)
        db.session.flush()
        log_audit("created", "sale", sale.id, f"{sale.sale_type} {sale.total_amount:.2f}")
    return {"sale": sale.to_dict()}


@server_action
def create_bulk_sales(rows: list) -> dict:
    rows = list(rows or [])
    if not rows:
        raise ValidationError("At least one sale is required")

    processed, errors = 0, []
    for index, row in enumerate(rows):
        result = create_sale(row)
        if result["success"]:
            processed += 1
        else:
            errors.append({"index": index, "error": result["error"]})

    logger.info("Bulk sales: %d of %d saved", processed, len(rows))
    return {
        "success": not errors,
        "processed": processed,
        "total": len(rows),
        "errors": errors,
    }


@server_action
def delete_sale(sale_id) -> dict:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    if sale.payment_status == STATUS_BILLED:
        raise ConflictError("Billed sales cannot be deleted. Delete the invoice first.")
    if sale.amount_allocated > 0:
        raise ConflictError("Sale has payments allocated to it")

    with unit_of_work():
        db.session.delete(sale)
        log_audit("deleted", "sale", sale_id)
    return {"message": "Sale deleted"}


@server_action
def bulk_delete_sales(sale_ids) -> dict:
    try:
        sale_ids = list(dict.fromkeys(int(i) for i in (sale_ids or [])))
    except (TypeError, ValueError):
        raise ValidationError("Sale ids must be whole numbers")
    if not sale_ids:
        raise ValidationError("No sales selected for deletion")

    sales = Sale.query.filter(Sale.id.in_(sale_ids)).all()
    if len(sales) != len(sale_ids):
        raise NotFoundError("Some selected sales no longer exist")
    blocked = [s.id for s in sales if s.payment_status == STATUS_BILLED or s.amount_allocated > 0]
    if blocked:
        raise ConflictError("Billed or paid sales cannot be deleted", sale_ids=blocked)

    affected = {s.customer_id for s in sales if s.customer_id}
    with unit_of_work():
        for sale in sales:
            db.session.delete(sale)
        log_audit("deleted", "sale", details=f"bulk delete of {len(sales)} sales")

    logger.info("Deleted %d sales", len(sales))
    return {"deleted_count": len(sales), "affected_customers": len(affected)}


def list_sales(customer_id=None, sale_type=None, payment_status=None,
               date_from=None, date_to=None) -> list:
    query = Sale.query
    if customer_id:
        query = query.filter(Sale.customer_id == customer_id)
    if sale_type:
        query = query.filter(Sale.sale_type == sale_type)
    if payment_status:
        query = query.filter(Sale.payment_status == payment_status)
    if date_from:
        query = query.filter(Sale.sale_date >= date_from)
    if date_to:
        query = query.filter(Sale.sale_date <= date_to)
    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()


def sales_stats(date_from=None, date_to=None) -> dict:
    stats = {
        "cash_count": 0, "cash_amount": 0.0,
        "qr_count": 0, "qr_amount": 0.0,
        "credit_count": 0, "credit_amount": 0.0,
        "pending_credit_amount": 0.0, "billed_credit_amount": 0.0,
        "completed_credit_amount": 0.0,
    }
    for sale in list_sales(date_from=date_from, date_to=date_to):
        prefix = sale.sale_type.lower()
        stats[f"{prefix}_count"] += 1
        stats[f"{prefix}_amount"] = round_money(stats[f"{prefix}_amount"] + sale.total_amount)
        if sale.sale_type == SALE_CREDIT:
            key = f"{sale.payment_status.lower()}_credit_amount"
            stats[key] = round_money(stats[key] + sale.total_amount)
    return stats
