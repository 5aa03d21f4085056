from datetime import datetime
from dairyflow.extensions import db

DELIVERY_TIMES = ("Morning", "Evening")
PAYMENT_METHODS = ("Monthly", "Prepaid")


class Customer(db.Model):
    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)
    billing_name = db.Column(db.String(100), nullable=False, index=True)
    contact_person = db.Column(db.String(100), default="")
    address = db.Column(db.String(500), default="")
    phone_primary = db.Column(db.String(15), default="")
    route_id = db.Column(db.Integer, db.ForeignKey("routes.id"))
    delivery_time = db.Column(db.String(10), nullable=False, default="Morning")
    payment_method = db.Column(db.String(10), nullable=False, default="Monthly")
    billing_cycle_day = db.Column(db.Integer, nullable=False, default=1)
    # Historical debt from before invoicing; never rewritten by payments.
    opening_balance = db.Column(db.Float, nullable=False, default=0.0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    route = db.relationship("Route", back_populates="customers")
    subscriptions = db.relationship(
        "Subscription",
        back_populates="customer",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    invoices = db.relationship("Invoice", back_populates="customer", lazy="dynamic")
    payments = db.relationship("Payment", back_populates="customer", lazy="dynamic")
    allocations = db.relationship("PaymentAllocation", back_populates="customer", lazy="dynamic")

    def __repr__(self):
        return f"<Customer {self.billing_name}>"

    @property
    def route_name(self):
        return self.route.name if self.route else ""

    @property
    def opening_balance_paid(self):
        """Sum of payment amounts tagged against the opening balance."""
        from dairyflow.models.payment import PaymentAllocation, TARGET_OPENING_BALANCE
        total = (
            db.session.query(db.func.coalesce(db.func.sum(PaymentAllocation.amount), 0.0))
            .filter(
                PaymentAllocation.customer_id == self.id,
                PaymentAllocation.target_type == TARGET_OPENING_BALANCE,
            )
            .scalar()
        )
        return float(total or 0.0)

    @property
    def effective_opening_balance(self):
        return max(0.0, round((self.opening_balance or 0.0) - self.opening_balance_paid, 2))

    def to_dict(self):
        return {
            "id": self.id,
            "billing_name": self.billing_name,
            "contact_person": self.contact_person,
            "address": self.address,
            "phone_primary": self.phone_primary,
            "route_id": self.route_id,
            "route_name": self.route_name,
            "delivery_time": self.delivery_time,
            "payment_method": self.payment_method,
            "billing_cycle_day": self.billing_cycle_day,
            "opening_balance": self.opening_balance,
            "is_active": self.is_active,
        }
