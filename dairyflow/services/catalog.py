"""
Master data: customers, products, routes, subscriptions and modifications.
Payloads are validated with the matching WTForms form before anything
is written.
"""
import logging

from dairyflow.extensions import db
from dairyflow.forms.customer_form import CustomerForm
from dairyflow.forms.modification_form import BulkModificationForm, ModificationForm
from dairyflow.forms.product_form import ProductForm
from dairyflow.forms.subscription_form import SubscriptionForm
from dairyflow.models.customer import Customer
from dairyflow.models.delivery import Delivery
from dairyflow.models.modification import Modification
from dairyflow.models.order import DailyOrder
from dairyflow.models.product import Product
from dairyflow.models.route import Route
from dairyflow.models.sale import Sale
from dairyflow.models.subscription import Subscription, SUBSCRIPTION_PATTERN
from dairyflow.services.errors import ConflictError, NotFoundError, ValidationError, server_action
from dairyflow.services.quantities import pattern_preview
from dairyflow.services.transaction import unit_of_work
from dairyflow.utils.dates import business_today
from dairyflow.utils.helpers import form_errors, log_audit, to_formdata

logger = logging.getLogger(__name__)


def _validate(form_class, data: dict, **defaults):
    data = {**defaults, **(data or {})}
    form = form_class(formdata=to_formdata(data), meta={"csrf": False})
    if not form.validate():
        raise ValidationError(form_errors(form), fields=form.errors)
    return form


def _get_or_404(model, object_id, label):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


def _float(value):
    return float(value) if value is not None else None


# ── Routes ───────────────────────────────────────────────────────────────────

def list_routes() -> list:
    return Route.query.order_by(Route.name).all()


@server_action
def create_route(name, description="", personnel_name="") -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Route name is required")
    if Route.query.filter_by(name=name).first():
        raise ConflictError("A route with this name already exists")
    with unit_of_work():
        route = Route(name=name, description=description or "", personnel_name=personnel_name or "")
        db.session.add(route)
    return {"route": route.to_dict()}


# ── Customers ────────────────────────────────────────────────────────────────

def _apply_customer(customer: Customer, form: CustomerForm) -> None:
    customer.billing_name = form.billing_name.data.strip()
    customer.contact_person = form.contact_person.data or ""
    customer.address = form.address.data or ""
    customer.phone_primary = form.phone_primary.data or ""
    customer.route_id = form.route_id.data or None
    customer.delivery_time = form.delivery_time.data
    customer.payment_method = form.payment_method.data
    customer.billing_cycle_day = form.billing_cycle_day.data or 1
    customer.opening_balance = _float(form.opening_balance.data) or 0.0
    customer.is_active = form.is_active.data


def list_customers(active_only=False, search=None) -> list:
    query = Customer.query
    if active_only:
        query = query.filter(Customer.is_active.is_(True))
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Customer.billing_name.ilike(term),
            Customer.contact_person.ilike(term),
            Customer.phone_primary.ilike(term),
        ))
    return query.order_by(Customer.billing_name).all()


@server_action
def create_customer(data: dict) -> dict:
    form = _validate(CustomerForm, data, is_active=True)
    if Customer.query.filter(db.func.lower(Customer.billing_name) == form.billing_name.data.strip().lower()).first():
        raise ConflictError("A customer with this billing name already exists")
    with unit_of_work():
        customer = Customer()
        _apply_customer(customer, form)
        db.session.add(customer)
        db.session.flush()
        log_audit("created", "customer", customer.id, customer.billing_name)
    return {"customer": customer.to_dict()}


@server_action
def update_customer(customer_id, data: dict) -> dict:
    customer = _get_or_404(Customer, customer_id, "Customer")
    form = _validate(CustomerForm, {**customer.to_dict(), **data})
    clash = Customer.query.filter(
        db.func.lower(Customer.billing_name) == form.billing_name.data.strip().lower(),
        Customer.id != customer.id,
    ).first()
    if clash:
        raise ConflictError("A customer with this billing name already exists")
    with unit_of_work():
        _apply_customer(customer, form)
        log_audit("updated", "customer", customer.id, customer.billing_name)
    return {"customer": customer.to_dict()}


@server_action
def delete_customer(customer_id) -> dict:
    customer = _get_or_404(Customer, customer_id, "Customer")
    if customer.subscriptions.filter_by(is_active=True).count():
        raise ConflictError("Cannot delete customer with active subscriptions")
    if customer.invoices.count() or customer.payments.count():
        raise ConflictError("Cannot delete customer with invoices or payments. Deactivate instead.")
    if (Sale.query.filter_by(customer_id=customer.id).count()
            or Delivery.query.filter_by(customer_id=customer.id).count()
            or DailyOrder.query.filter_by(customer_id=customer.id).count()):
        raise ConflictError("Cannot delete customer with sales, deliveries or orders. Deactivate instead.")
    with unit_of_work():
        Modification.query.filter_by(customer_id=customer.id).delete()
        log_audit("deleted", "customer", customer.id, customer.billing_name)
        db.session.delete(customer)
    return {"message": "Customer deleted"}


# ── Products ─────────────────────────────────────────────────────────────────

def list_products(subscription_only=False) -> list:
    query = Product.query
    if subscription_only:
        query = query.filter(Product.is_subscription_product.is_(True))
    return query.order_by(Product.name).all()


def _apply_product(product: Product, form: ProductForm) -> None:
    product.name = form.name.data.strip()
    product.code = form.code.data.strip().upper()
    product.current_price = float(form.current_price.data)
    product.unit_of_measure = form.unit_of_measure.data or "liter"
    product.gst_rate = _float(form.gst_rate.data) or 0.0
    product.is_subscription_product = form.is_subscription_product.data


@server_action
def create_product(data: dict) -> dict:
    form = _validate(ProductForm, data, is_subscription_product=True)
    if Product.query.filter_by(code=form.code.data.strip().upper()).first():
        raise ConflictError("A product with this code already exists")
    with unit_of_work():
        product = Product()
        _apply_product(product, form)
        db.session.add(product)
        db.session.flush()
        log_audit("created", "product", product.id, product.code)
    return {"product": product.to_dict()}


@server_action
def update_product(product_id, data: dict) -> dict:
    product = _get_or_404(Product, product_id, "Product")
    form = _validate(ProductForm, {**product.to_dict(), **data})
    clash = Product.query.filter(
        Product.code == form.code.data.strip().upper(), Product.id != product.id
    ).first()
    if clash:
        raise ConflictError("A product with this code already exists")
    with unit_of_work():
        _apply_product(product, form)
        log_audit("updated", "product", product.id, product.code)
    return {"product": product.to_dict()}


# ── Subscriptions ────────────────────────────────────────────────────────────

def _check_single_active(customer_id, product_id, exclude_id=None) -> None:
    query = Subscription.query.filter_by(customer_id=customer_id, product_id=product_id, is_active=True)
    if exclude_id is not None:
        query = query.filter(Subscription.id != exclude_id)
    if query.first():
        raise ConflictError("Customer already has an active subscription for this product")


def _apply_subscription(sub: Subscription, form: SubscriptionForm) -> None:
    sub.customer_id = form.customer_id.data
    sub.product_id = form.product_id.data
    sub.subscription_type = form.subscription_type.data
    sub.is_active = form.is_active.data
    if sub.subscription_type == SUBSCRIPTION_PATTERN:
        sub.daily_quantity = None
        sub.pattern_day1_quantity = _float(form.pattern_day1_quantity.data)
        sub.pattern_day2_quantity = _float(form.pattern_day2_quantity.data)
        sub.pattern_start_date = form.pattern_start_date.data
    else:
        sub.daily_quantity = _float(form.daily_quantity.data)
        sub.pattern_day1_quantity = None
        sub.pattern_day2_quantity = None
        sub.pattern_start_date = None


def list_subscriptions(customer_id=None) -> list:
    query = Subscription.query
    if customer_id:
        query = query.filter(Subscription.customer_id == customer_id)
    return query.order_by(Subscription.customer_id, Subscription.product_id).all()


@server_action
def create_subscription(data: dict) -> dict:
    form = _validate(SubscriptionForm, data, is_active=True)
    _get_or_404(Customer, form.customer_id.data, "Customer")
    _get_or_404(Product, form.product_id.data, "Product")
    if form.is_active.data:
        _check_single_active(form.customer_id.data, form.product_id.data)
    with unit_of_work():
        sub = Subscription()
        _apply_subscription(sub, form)
        db.session.add(sub)
        db.session.flush()
        log_audit("created", "subscription", sub.id)
    return {"subscription": sub.to_dict()}


@server_action
def update_subscription(subscription_id, data: dict) -> dict:
    sub = _get_or_404(Subscription, subscription_id, "Subscription")
    form = _validate(SubscriptionForm, {**sub.to_dict(), **data})
    if form.is_active.data:
        _check_single_active(form.customer_id.data, form.product_id.data, exclude_id=sub.id)
    with unit_of_work():
        _apply_subscription(sub, form)
        log_audit("updated", "subscription", sub.id)
    return {"subscription": sub.to_dict()}


@server_action
def toggle_subscription(subscription_id) -> dict:
    sub = _get_or_404(Subscription, subscription_id, "Subscription")
    if not sub.is_active:
        _check_single_active(sub.customer_id, sub.product_id, exclude_id=sub.id)
    with unit_of_work():
        sub.is_active = not sub.is_active
        log_audit("toggled", "subscription", sub.id, "active" if sub.is_active else "inactive")
    return {"subscription": sub.to_dict()}


@server_action
def delete_subscription(subscription_id) -> dict:
    sub = _get_or_404(Subscription, subscription_id, "Subscription")
    with unit_of_work():
        log_audit("deleted", "subscription", sub.id)
        db.session.delete(sub)
    return {"message": "Subscription deleted"}


def subscription_preview(subscription_id, days=14) -> list:
    sub = _get_or_404(Subscription, subscription_id, "Subscription")
    return pattern_preview(sub, business_today(), days)


# ── Modifications ────────────────────────────────────────────────────────────

def _apply_modification(mod: Modification, form, customer_id) -> None:
    mod.customer_id = customer_id
    mod.product_id = form.product_id.data
    mod.modification_type = form.modification_type.data
    mod.start_date = form.start_date.data
    mod.end_date = form.end_date.data
    mod.quantity_change = _float(form.quantity_change.data)
    mod.reason = form.reason.data or ""


def list_modifications(customer_id=None, active_only=False, on_date=None) -> list:
    query = Modification.query
    if customer_id:
        query = query.filter(Modification.customer_id == customer_id)
    if active_only:
        query = query.filter(Modification.is_active.is_(True))
    if on_date is not None:
        query = query.filter(Modification.start_date <= on_date, Modification.end_date >= on_date)
    return query.order_by(Modification.start_date.desc(), Modification.id.desc()).all()


@server_action
def create_modification(data: dict) -> dict:
    form = _validate(ModificationForm, data)
    _get_or_404(Customer, form.customer_id.data, "Customer")
    _get_or_404(Product, form.product_id.data, "Product")
    with unit_of_work():
        mod = Modification(is_active=True)
        _apply_modification(mod, form, form.customer_id.data)
        db.session.add(mod)
        db.session.flush()
        log_audit("created", "modification", mod.id, mod.modification_type)
    return {"modification": mod.to_dict()}


@server_action
def update_modification(modification_id, data: dict) -> dict:
    mod = _get_or_404(Modification, modification_id, "Modification")
    form = _validate(ModificationForm, {**mod.to_dict(), **data})
    with unit_of_work():
        _apply_modification(mod, form, form.customer_id.data)
        log_audit("updated", "modification", mod.id)
    return {"modification": mod.to_dict()}


@server_action
def toggle_modification(modification_id) -> dict:
    mod = _get_or_404(Modification, modification_id, "Modification")
    with unit_of_work():
        mod.is_active = not mod.is_active
        log_audit("toggled", "modification", mod.id, "active" if mod.is_active else "inactive")
    return {"modification": mod.to_dict()}


@server_action
def delete_modification(modification_id) -> dict:
    mod = _get_or_404(Modification, modification_id, "Modification")
    with unit_of_work():
        log_audit("deleted", "modification", mod.id)
        db.session.delete(mod)
    return {"message": "Modification deleted"}


@server_action
def create_bulk_modifications(customer_ids, data: dict) -> dict:
    """The same modification for several customers; each customer succeeds or fails alone."""
    try:
        customer_ids = list(dict.fromkeys(int(i) for i in (customer_ids or [])))
    except (TypeError, ValueError):
        raise ValidationError("Customer ids must be whole numbers")
    if not customer_ids:
        raise ValidationError("Select at least one customer")
    form = _validate(BulkModificationForm, data)
    _get_or_404(Product, form.product_id.data, "Product")

    processed, errors = 0, []
    for index, customer_id in enumerate(customer_ids):
        if db.session.get(Customer, customer_id) is None:
            errors.append({"index": index, "error": f"Customer {customer_id} not found"})
            continue
        with unit_of_work():
            mod = Modification(is_active=True)
            _apply_modification(mod, form, customer_id)
            db.session.add(mod)
        processed += 1

    logger.info("Bulk modifications: %d of %d saved", processed, len(customer_ids))
    return {
        "success": not errors,
        "processed": processed,
        "total": len(customer_ids),
        "errors": errors,
    }
