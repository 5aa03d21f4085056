"""
Daily order generation.

One order per active subscription of an active customer, priced at the
product's current price and routed like the customer.
"""
import logging

from sqlalchemy.exc import IntegrityError

from dairyflow.extensions import db
from dairyflow.models.customer import Customer
from dairyflow.models.delivery import Delivery
from dairyflow.models.order import DailyOrder, ORDER_GENERATED
from dairyflow.models.subscription import Subscription
from dairyflow.services.errors import ConflictError, ValidationError, server_action
from dairyflow.services.quantities import active_modifications_for_date, resolve_quantity
from dairyflow.services.transaction import unit_of_work
from dairyflow.utils.helpers import log_audit, round_money

logger = logging.getLogger(__name__)


def _active_subscriptions():
    return (
        Subscription.query
        .join(Customer, Subscription.customer_id == Customer.id)
        .filter(Subscription.is_active.is_(True))
        .order_by(Subscription.id)
        .all()
    )


def _planned_orders(order_date, subscriptions) -> list:
    """Quantities for every subscription that yields a positive amount."""
    modifications = active_modifications_for_date(order_date)
    planned = []
    for sub in subscriptions:
        customer, product = sub.customer, sub.product
        if customer is None or product is None or not customer.is_active:
            continue
        quantity = resolve_quantity(
            sub, order_date, modifications.get((customer.id, product.id), [])
        )
        if quantity <= 0:
            continue
        planned.append({
            "customer": customer,
            "product": product,
            "quantity": quantity,
            "unit_price": product.current_price,
            "total_amount": round_money(quantity * product.current_price),
        })
    return planned


def _summarize(planned) -> dict:
    by_route, by_product = {}, {}
    total = 0.0
    for row in planned:
        customer, product = row["customer"], row["product"]
        total += row["total_amount"]
        route_name = customer.route.name if customer.route else f"Route {customer.route_id}"
        for bucket, key in ((by_route, route_name), (by_product, product.code)):
            entry = bucket.setdefault(key, {"quantity": 0.0, "amount": 0.0})
            entry["quantity"] += row["quantity"]
            entry["amount"] = round_money(entry["amount"] + row["total_amount"])
    return {
        "total_orders": len(planned),
        "total_amount": round_money(total),
        "by_route": by_route,
        "by_product": by_product,
    }


@server_action
def preview_daily_orders(order_date) -> dict:
    subscriptions = _active_subscriptions()
    planned = _planned_orders(order_date, subscriptions) if subscriptions else []
    rows = [
        {
            "customer_name": p["customer"].billing_name,
            "product_name": p["product"].name,
            "quantity": p["quantity"],
            "unit_price": p["unit_price"],
            "total_amount": p["total_amount"],
            "route_name": p["customer"].route_name,
            "delivery_time": p["customer"].delivery_time,
        }
        for p in planned
    ]
    return {"data": rows, "summary": _summarize(planned)}


@server_action
def generate_daily_orders(order_date) -> dict:
    label = order_date.isoformat()
    try:
        with unit_of_work():
            if DailyOrder.query.filter_by(order_date=order_date).first():
                raise ConflictError(
                    f"Orders already exist for {label}. Please delete existing orders first."
                )

            subscriptions = _active_subscriptions()
            if not subscriptions:
                raise ValidationError("No active subscriptions found")

            planned = _planned_orders(order_date, subscriptions)
            if not planned:
                raise ValidationError("No orders to generate for this date")

            for p in planned:
                customer = p["customer"]
                db.session.add(DailyOrder(
                    customer_id=customer.id,
                    product_id=p["product"].id,
                    order_date=order_date,
                    planned_quantity=p["quantity"],
                    unit_price=p["unit_price"],
                    total_amount=p["total_amount"],
                    route_id=customer.route_id,
                    delivery_time=customer.delivery_time,
                    status=ORDER_GENERATED,
                ))
            log_audit("generated", "daily_orders", details=f"{len(planned)} orders for {label}")
    except IntegrityError:
        # Another request inserted orders for the same date first.
        raise ConflictError(
            f"Orders already exist for {label}. Please delete existing orders first."
        )

    logger.info("Generated %d orders for %s", len(planned), label)
    return {
        "message": f"Generated {len(planned)} orders for {label}",
        "orders_count": len(planned),
        "summary": _summarize(planned),
    }


@server_action
def delete_daily_orders(order_date) -> dict:
    label = order_date.isoformat()
    with unit_of_work():
        ids = [o.id for o in DailyOrder.query.filter_by(order_date=order_date).all()]
        if ids:
            Delivery.query.filter(Delivery.daily_order_id.in_(ids)).update(
                {Delivery.daily_order_id: None}, synchronize_session=False
            )
            DailyOrder.query.filter(DailyOrder.id.in_(ids)).delete(synchronize_session=False)
        log_audit("deleted", "daily_orders", details=f"{len(ids)} orders for {label}")
    logger.info("Deleted %d orders for %s", len(ids), label)
    return {"message": f"Deleted all orders for {label}", "deleted_count": len(ids)}


def list_daily_orders(order_date=None) -> list:
    query = DailyOrder.query
    if order_date is not None:
        query = query.filter(DailyOrder.order_date == order_date)
    return query.order_by(
        DailyOrder.route_id, DailyOrder.delivery_time, DailyOrder.customer_id
    ).all()
