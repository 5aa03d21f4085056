from datetime import datetime
from dairyflow.extensions import db


class Delivery(db.Model):
    __tablename__ = "deliveries"

    id = db.Column(db.Integer, primary_key=True)
    # NULL for additional (unplanned) deliveries
    daily_order_id = db.Column(db.Integer, db.ForeignKey("daily_orders.id", ondelete="SET NULL"))
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    route_id = db.Column(db.Integer, db.ForeignKey("routes.id"))
    order_date = db.Column(db.Date, nullable=False, index=True)
    planned_quantity = db.Column(db.Float)
    actual_quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    total_amount = db.Column(db.Float, nullable=False)
    delivery_status = db.Column(db.String(20), nullable=False, default="delivered")
    delivery_time = db.Column(db.String(10))
    delivery_person = db.Column(db.String(100), default="")
    delivery_notes = db.Column(db.Text, default="")
    delivered_at = db.Column(db.DateTime, default=datetime.utcnow)

    customer = db.relationship("Customer")
    product = db.relationship("Product")
    order = db.relationship("DailyOrder")

    def __repr__(self):
        return f"<Delivery {self.order_date} c={self.customer_id} q={self.actual_quantity}>"

    def to_dict(self):
        return {
            "id": self.id,
            "daily_order_id": self.daily_order_id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "order_date": self.order_date.isoformat(),
            "planned_quantity": self.planned_quantity,
            "actual_quantity": self.actual_quantity,
            "unit_price": self.unit_price,
            "total_amount": self.total_amount,
            "delivery_status": self.delivery_status,
        }
