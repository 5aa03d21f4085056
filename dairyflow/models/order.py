from datetime import datetime
from dairyflow.extensions import db

ORDER_GENERATED = "Generated"
ORDER_DELIVERED = "Delivered"


class DailyOrder(db.Model):
    __tablename__ = "daily_orders"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "product_id", "order_date", name="uq_daily_orders_customer_product_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    order_date = db.Column(db.Date, nullable=False, index=True)
    planned_quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)      # snapshot of product price
    total_amount = db.Column(db.Float, nullable=False)
    route_id = db.Column(db.Integer, db.ForeignKey("routes.id"))
    delivery_time = db.Column(db.String(10))
    status = db.Column(db.String(20), nullable=False, default=ORDER_GENERATED)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    customer = db.relationship("Customer")
    product = db.relationship("Product")
    route = db.relationship("Route")

    def __repr__(self):
        return f"<DailyOrder {self.order_date} c={self.customer_id} p={self.product_id} q={self.planned_quantity}>"

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.billing_name if self.customer else "",
            "product_id": self.product_id,
            "product_code": self.product.code if self.product else "",
            "order_date": self.order_date.isoformat(),
            "planned_quantity": self.planned_quantity,
            "unit_price": self.unit_price,
            "total_amount": self.total_amount,
            "route_id": self.route_id,
            "delivery_time": self.delivery_time,
            "status": self.status,
        }
