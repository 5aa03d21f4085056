from datetime import date, datetime
from dairyflow.extensions import db

TARGET_OPENING_BALANCE = "opening_balance"
TARGET_INVOICE = "invoice"
TARGET_SALE = "sale"
ALLOCATION_TARGETS = (TARGET_OPENING_BALANCE, TARGET_INVOICE, TARGET_SALE)

METHOD_LABELS = {
    "cash": "Cash",
    "upi": "UPI",
    "bank_transfer": "Bank Transfer",
    "cheque": "Cheque",
    "other": "Other",
}


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    payment_date = db.Column(db.Date, nullable=False, default=date.today)
    payment_method = db.Column(db.String(50), default="cash")
    period_start = db.Column(db.Date)
    period_end = db.Column(db.Date)
    notes = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    customer = db.relationship("Customer", back_populates="payments")
    allocations = db.relationship(
        "PaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAllocation.id",
    )

    def __repr__(self):
        return f"<Payment {self.id} {self.amount:.2f} {self.payment_method}>"

    @property
    def method_label(self):
        return METHOD_LABELS.get(self.payment_method, (self.payment_method or "").title())

    @property
    def amount_applied(self):
        return round(sum(a.amount for a in self.allocations), 2)

    @property
    def amount_unapplied(self):
        """Unallocated remainder held as customer credit."""
        return max(0.0, round(self.amount - self.amount_applied, 2))

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "amount": self.amount,
            "payment_date": self.payment_date.isoformat(),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "amount_applied": self.amount_applied,
            "amount_unapplied": self.amount_unapplied,
            "allocations": [a.to_dict() for a in self.allocations],
        }


class PaymentAllocation(db.Model):
    __tablename__ = "payment_allocations"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payment_allocations_amount_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    target_type = db.Column(db.String(20), nullable=False)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), index=True)
    amount = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    payment = db.relationship("Payment", back_populates="allocations")
    customer = db.relationship("Customer", back_populates="allocations")
    invoice = db.relationship("Invoice", back_populates="allocations")
    sale = db.relationship("Sale", back_populates="allocations")

    @property
    def target_id(self):
        if self.target_type == TARGET_INVOICE:
            return self.invoice_id
        if self.target_type == TARGET_SALE:
            return self.sale_id
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.target_type,
            "target_id": self.target_id,
            "amount": self.amount,
        }
