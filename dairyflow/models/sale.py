from datetime import date, datetime
from dairyflow.extensions import db

SALE_CASH = "Cash"
SALE_QR = "QR"
SALE_CREDIT = "Credit"
SALE_TYPES = (SALE_CASH, SALE_QR, SALE_CREDIT)

STATUS_COMPLETED = "Completed"
STATUS_PENDING = "Pending"
STATUS_BILLED = "Billed"


class Sale(db.Model):
    __tablename__ = "sales"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    total_amount = db.Column(db.Float, nullable=False)    # GST inclusive
    gst_amount = db.Column(db.Float, nullable=False, default=0.0)
    sale_type = db.Column(db.String(10), nullable=False)
    sale_date = db.Column(db.Date, nullable=False, default=date.today, index=True)
    payment_status = db.Column(db.String(20), nullable=False, default=STATUS_COMPLETED)
    notes = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    customer = db.relationship("Customer")
    product = db.relationship("Product")
    allocations = db.relationship("PaymentAllocation", back_populates="sale", lazy="dynamic")

    def __repr__(self):
        return f"<Sale {self.sale_type} {self.total_amount:.2f} {self.payment_status}>"

    @property
    def amount_allocated(self):
        return round(sum(a.amount for a in self.allocations), 2)

    @property
    def amount_remaining(self):
        return max(0.0, round(self.total_amount - self.amount_allocated, 2))

    @property
    def is_pending_credit(self):
        return self.sale_type == SALE_CREDIT and self.payment_status == STATUS_PENDING

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else "",
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_amount": self.total_amount,
            "gst_amount": self.gst_amount,
            "sale_type": self.sale_type,
            "sale_date": self.sale_date.isoformat(),
            "payment_status": self.payment_status,
            "notes": self.notes,
        }
