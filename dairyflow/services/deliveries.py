"""
Delivery confirmation against generated orders, plus unplanned
("additional") deliveries.
"""
import logging
from datetime import datetime

from dairyflow.extensions import db
from dairyflow.models.customer import Customer
from dairyflow.models.delivery import Delivery
from dairyflow.models.invoice import InvoiceLine
from dairyflow.models.order import DailyOrder, ORDER_DELIVERED, ORDER_GENERATED
from dairyflow.models.product import Product
from dairyflow.services.errors import ConflictError, NotFoundError, ValidationError, server_action
from dairyflow.services.transaction import unit_of_work
from dairyflow.utils.helpers import log_audit, round_money

logger = logging.getLogger(__name__)


@server_action
def confirm_deliveries(order_ids, custom_quantities=None, delivery_person=None,
                       notes=None, delivered_at=None) -> dict:
    """
    Deliver a batch of generated orders. `custom_quantities` maps
    order id -> actual quantity; anything not listed is delivered as planned.
    """
    try:
        order_ids = list(dict.fromkeys(int(i) for i in (order_ids or [])))
    except (TypeError, ValueError):
        raise ValidationError("Order ids must be whole numbers")
    if not order_ids:
        raise ValidationError("Select at least one order to deliver")
    if not isinstance(custom_quantities or {}, dict):
        raise ValidationError("custom_quantities must map order ids to quantities")
    try:
        custom_quantities = {int(k): float(v) for k, v in (custom_quantities or {}).items()}
    except (TypeError, ValueError):
        raise ValidationError("custom_quantities must map order ids to quantities")
    if any(q < 0 for q in custom_quantities.values()):
        raise ValidationError("Delivered quantity cannot be negative")
    delivered_at = delivered_at or datetime.utcnow()

    with unit_of_work():
        orders = (
            DailyOrder.query
            .filter(DailyOrder.id.in_(order_ids), DailyOrder.status == ORDER_GENERATED)
            .all()
        )
        if len(orders) != len(order_ids):
            raise ConflictError(
                "Some orders are not available for delivery or have already been delivered"
            )

        for order in orders:
            actual = custom_quantities.get(order.id, order.planned_quantity)
            db.session.add(Delivery(
                daily_order_id=order.id,
                customer_id=order.customer_id,
                product_id=order.product_id,
                route_id=order.route_id,
                order_date=order.order_date,
                planned_quantity=order.planned_quantity,
                actual_quantity=actual,
                unit_price=order.unit_price,
                total_amount=round_money(actual * order.unit_price),
                delivery_time=order.delivery_time,
                delivery_person=delivery_person or "",
                delivery_notes=notes or "",
                delivered_at=delivered_at,
            ))
            order.status = ORDER_DELIVERED
        log_audit("delivered", "daily_orders", details=f"{len(orders)} orders")

    logger.info("Confirmed %d deliveries", len(orders))
    return {"message": f"Recorded {len(orders)} deliveries", "count": len(orders)}


@server_action
def create_additional_delivery(customer_id, product_id, quantity, order_date,
                               unit_price=None, delivery_person=None, notes=None) -> dict:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    quantity = float(quantity or 0)
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    price = product.current_price if unit_price is None else float(unit_price)

    with unit_of_work():
        delivery = Delivery(
            daily_order_id=None,
            customer_id=customer.id,
            product_id=product.id,
            route_id=customer.route_id,
            order_date=order_date,
            planned_quantity=0.0,
            actual_quantity=quantity,
            unit_price=price,
            total_amount=round_money(quantity * price),
            delivery_time=customer.delivery_time,
            delivery_person=delivery_person or "",
            delivery_notes=notes or "",
        )
        db.session.add(delivery)
        db.session.flush()
        log_audit("created", "delivery", delivery.id, "additional delivery")
    return {"delivery": delivery.to_dict()}


@server_action
def delete_delivery(delivery_id) -> dict:
    delivery = db.session.get(Delivery, delivery_id)
    if delivery is None:
        raise NotFoundError("Delivery not found")
    if InvoiceLine.query.filter_by(delivery_id=delivery.id).first():
        raise ConflictError("Cannot delete a delivery that has been invoiced")

    with unit_of_work():
        if delivery.order is not None:
            delivery.order.status = ORDER_GENERATED
        db.session.delete(delivery)
        log_audit("deleted", "delivery", delivery_id)
    return {"message": "Delivery deleted"}


def delivery_stats(order_date=None) -> dict:
    orders_q = DailyOrder.query
    deliveries_q = Delivery.query.filter(Delivery.daily_order_id.isnot(None))
    if order_date is not None:
        orders_q = orders_q.filter(DailyOrder.order_date == order_date)
        deliveries_q = deliveries_q.filter(Delivery.order_date == order_date)
    orders = orders_q.all()
    deliveries = deliveries_q.all()

    total = len(orders)
    delivered = sum(1 for o in orders if o.status == ORDER_DELIVERED)
    planned_qty = sum(o.planned_quantity for o in orders)
    actual_qty = sum(d.actual_quantity for d in deliveries)
    return {
        "total_orders": total,
        "delivered_orders": delivered,
        "pending_orders": total - delivered,
        "total_planned_quantity": planned_qty,
        "total_actual_quantity": actual_qty,
        "completion_rate": round(delivered / total * 100) if total else 0,
        "quantity_variance": actual_qty - planned_qty,
    }
