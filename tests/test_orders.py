from datetime import date

from dairyflow.extensions import db
from dairyflow.models import AuditLog, DailyOrder, Delivery
from dairyflow.services import orders
from dairyflow.services.deliveries import confirm_deliveries
from conftest import make_customer, make_daily, make_modification, make_pattern, make_product, order_for

DAY = date(2025, 6, 10)


def test_generate_creates_one_order_per_active_subscription(customer, milk, route):
    other = make_customer("Bala", route=route)
    make_daily(customer, milk, 2)
    make_daily(other, milk, 1.5)

    result = orders.generate_daily_orders(DAY)

    assert result["success"] is True
    assert result["orders_count"] == 2
    order = order_for(customer, milk, DAY)
    assert order.planned_quantity == 2
    assert order.unit_price == 60.0
    assert order.total_amount == 120.0
    assert order.route_id == route.id
    assert order.delivery_time == "Morning"
    assert order.status == "Generated"
    assert result["summary"]["total_amount"] == 210.0
    assert result["summary"]["by_route"]["North"]["quantity"] == 3.5


def test_generate_never_emits_non_positive_quantities(customer, milk, route):
    skipped = make_customer("Skipper", route=route)
    reduced = make_customer("Reducer", route=route)
    make_daily(customer, milk, 1)
    make_daily(skipped, milk, 2)
    make_daily(reduced, milk, 1)
    make_modification(skipped, milk, "Skip", DAY)
    make_modification(reduced, milk, "Decrease", DAY, change=3)

    result = orders.generate_daily_orders(DAY)

    assert result["orders_count"] == 1
    assert all(o.planned_quantity > 0 for o in DailyOrder.query.all())


def test_inactive_customer_and_subscription_are_skipped(milk, route):
    inactive = make_customer("Gone", route=route, is_active=False)
    paused = make_customer("Paused", route=route)
    active = make_customer("Here", route=route)
    make_daily(inactive, milk, 1)
    make_daily(paused, milk, 1, active=False)
    make_daily(active, milk, 1)

    result = orders.generate_daily_orders(DAY)

    assert result["orders_count"] == 1
    assert order_for(active, milk, DAY) is not None


def test_pattern_subscription_uses_cycle_day(customer, milk):
    make_pattern(customer, milk, 1, 2, date(2025, 6, 1))
    orders.generate_daily_orders(date(2025, 6, 2))
    assert order_for(customer, milk, date(2025, 6, 2)).planned_quantity == 2


def test_generate_rejects_date_with_existing_orders(customer, milk):
    make_daily(customer, milk, 2)
    assert orders.generate_daily_orders(DAY)["success"] is True

    again = orders.generate_daily_orders(DAY)
    assert again["success"] is False
    assert again["error_type"] == "conflict"
    assert "already exist" in again["error"]
    assert DailyOrder.query.count() == 1


def test_generate_succeeds_after_delete(customer, milk):
    make_daily(customer, milk, 2)
    orders.generate_daily_orders(DAY)

    deleted = orders.delete_daily_orders(DAY)
    assert deleted["deleted_count"] == 1

    assert orders.generate_daily_orders(DAY)["success"] is True
    assert DailyOrder.query.count() == 1


def test_generate_without_subscriptions_fails(app):
    result = orders.generate_daily_orders(DAY)
    assert result["success"] is False
    assert result["error"] == "No active subscriptions found"


def test_generate_with_everything_skipped_fails(customer, milk):
    make_daily(customer, milk, 2)
    make_modification(customer, milk, "Skip", DAY)
    result = orders.generate_daily_orders(DAY)
    assert result["success"] is False
    assert result["error_type"] == "validation"


def test_price_is_snapshotted(customer, milk):
    make_daily(customer, milk, 1)
    orders.generate_daily_orders(DAY)
    milk.current_price = 80.0
    db.session.commit()
    assert order_for(customer, milk, DAY).unit_price == 60.0


def test_delete_keeps_deliveries(customer, milk):
    make_daily(customer, milk, 2)
    orders.generate_daily_orders(DAY)
    order = order_for(customer, milk, DAY)
    confirm_deliveries([order.id])

    orders.delete_daily_orders(DAY)

    delivery = Delivery.query.one()
    assert delivery.daily_order_id is None
    assert delivery.actual_quantity == 2


def test_preview_does_not_write(customer, milk):
    make_daily(customer, milk, 2)
    result = orders.preview_daily_orders(DAY)
    assert result["summary"]["total_orders"] == 1
    assert result["data"][0]["customer_name"] == "Asha Rao"
    assert DailyOrder.query.count() == 0


def test_generation_is_audited(customer, milk):
    make_daily(customer, milk, 2)
    orders.generate_daily_orders(DAY)
    entry = AuditLog.query.filter_by(resource="daily_orders").one()
    assert entry.action == "generated"


def test_by_product_summary(customer, milk):
    curd = make_product(code="CURD", name="Curd", price=40)
    make_daily(customer, milk, 1)
    make_daily(customer, curd, 2)
    summary = orders.generate_daily_orders(DAY)["summary"]
    assert summary["by_product"]["MILK"] == {"quantity": 1, "amount": 60.0}
    assert summary["by_product"]["CURD"] == {"quantity": 2, "amount": 80.0}
