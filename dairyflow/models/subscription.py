from datetime import datetime
from dairyflow.extensions import db

SUBSCRIPTION_DAILY = "Daily"
SUBSCRIPTION_PATTERN = "Pattern"
SUBSCRIPTION_TYPES = (SUBSCRIPTION_DAILY, SUBSCRIPTION_PATTERN)


class Subscription(db.Model):
    __tablename__ = "base_subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    subscription_type = db.Column(db.String(10), nullable=False, default=SUBSCRIPTION_DAILY)
    daily_quantity = db.Column(db.Float)
    pattern_day1_quantity = db.Column(db.Float)
    pattern_day2_quantity = db.Column(db.Float)
    # Anchors the 2-day cycle: this date is always "day 1".
    pattern_start_date = db.Column(db.Date)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = db.relationship("Customer", back_populates="subscriptions")
    product = db.relationship("Product")

    def __repr__(self):
        return f"<Subscription {self.subscription_type} c={self.customer_id} p={self.product_id}>"

    @property
    def is_pattern(self):
        return self.subscription_type == SUBSCRIPTION_PATTERN

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "subscription_type": self.subscription_type,
            "daily_quantity": self.daily_quantity,
            "pattern_day1_quantity": self.pattern_day1_quantity,
            "pattern_day2_quantity": self.pattern_day2_quantity,
            "pattern_start_date": self.pattern_start_date.isoformat() if self.pattern_start_date else None,
            "is_active": self.is_active,
        }
