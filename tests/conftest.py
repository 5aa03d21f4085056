from datetime import datetime, timedelta

import pytest

from dairyflow import create_app
from dairyflow.extensions import db
from dairyflow.models import (
    Customer, DailyOrder, Delivery, Invoice, Modification, Product, Route, Sale, Subscription,
)


@pytest.fixture
def app():
    # Every app gets its own in-memory database.
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def route(app):
    route = Route(name="North", personnel_name="Ravi")
    db.session.add(route)
    db.session.commit()
    return route


@pytest.fixture
def milk(app):
    return make_product(code="MILK", name="Cow Milk", price=60.0)


@pytest.fixture
def customer(route):
    return make_customer("Asha Rao", route=route)


def make_product(code="MILK", name="Cow Milk", price=60.0, gst_rate=0.0, unit="liter"):
    product = Product(name=name, code=code, current_price=price, gst_rate=gst_rate, unit_of_measure=unit)
    db.session.add(product)
    db.session.commit()
    return product


def make_customer(name, route=None, opening_balance=0.0, is_active=True, created_at=None):
    customer = Customer(
        billing_name=name,
        route_id=route.id if route else None,
        opening_balance=opening_balance,
        is_active=is_active,
        created_at=created_at or datetime(2024, 1, 1),
    )
    db.session.add(customer)
    db.session.commit()
    return customer


def make_daily(customer, product, quantity, active=True):
    sub = Subscription(
        customer_id=customer.id,
        product_id=product.id,
        subscription_type="Daily",
        daily_quantity=quantity,
        is_active=active,
    )
    db.session.add(sub)
    db.session.commit()
    return sub


def make_pattern(customer, product, day1, day2, start):
    sub = Subscription(
        customer_id=customer.id,
        product_id=product.id,
        subscription_type="Pattern",
        pattern_day1_quantity=day1,
        pattern_day2_quantity=day2,
        pattern_start_date=start,
    )
    db.session.add(sub)
    db.session.commit()
    return sub


def make_modification(customer, product, kind, start, end=None, change=None,
                      active=True, created_at=None):
    mod = Modification(
        customer_id=customer.id,
        product_id=product.id,
        modification_type=kind,
        start_date=start,
        end_date=end or start,
        quantity_change=change,
        is_active=active,
        created_at=created_at or datetime.utcnow(),
    )
    db.session.add(mod)
    db.session.commit()
    return mod


def make_delivery(customer, product, on, quantity, unit_price=None):
    delivery = Delivery(
        customer_id=customer.id,
        product_id=product.id,
        route_id=customer.route_id,
        order_date=on,
        planned_quantity=quantity,
        actual_quantity=quantity,
        unit_price=product.current_price if unit_price is None else unit_price,
        total_amount=round(quantity * (product.current_price if unit_price is None else unit_price), 2),
    )
    db.session.add(delivery)
    db.session.commit()
    return delivery


def make_credit_sale(customer, product, on, quantity, unit_price, status="Pending"):
    sale = Sale(
        customer_id=customer.id,
        product_id=product.id,
        quantity=quantity,
        unit_price=unit_price,
        total_amount=round(quantity * unit_price, 2),
        gst_amount=0.0,
        sale_type="Credit",
        sale_date=on,
        payment_status=status,
    )
    db.session.add(sale)
    db.session.commit()
    return sale


def make_invoice(customer, total, invoice_date, number=None, due_days=15, status="Generated"):
    invoice = Invoice(
        invoice_number=number or f"20242500{Invoice.query.count() + 1:03d}",
        customer_id=customer.id,
        invoice_date=invoice_date,
        due_date=invoice_date + timedelta(days=due_days),
        period_start=invoice_date.replace(day=1),
        period_end=invoice_date,
        subscription_amount=total,
        total_amount=total,
        amount_outstanding=total,
        status=status,
    )
    db.session.add(invoice)
    db.session.commit()
    return invoice


def order_for(customer, product, on):
    return DailyOrder.query.filter_by(customer_id=customer.id, product_id=product.id, order_date=on).first()
