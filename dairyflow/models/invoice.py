from datetime import date, datetime
from dairyflow.extensions import db

INVOICE_GENERATED = "Generated"
INVOICE_SENT = "Sent"
INVOICE_PAID = "Paid"
INVOICE_STATUSES = (INVOICE_GENERATED, INVOICE_SENT, INVOICE_PAID)

LINE_SUBSCRIPTION = "subscription"
LINE_MANUAL_SALE = "manual_sale"


class Invoice(db.Model):
    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    invoice_date = db.Column(db.Date, nullable=False, default=date.today)
    due_date = db.Column(db.Date)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    subscription_amount = db.Column(db.Float, nullable=False, default=0.0)
    manual_sales_amount = db.Column(db.Float, nullable=False, default=0.0)
    gst_amount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    # Cache of total_amount minus invoice allocations; refreshed by the allocator.
    amount_paid = db.Column(db.Float, nullable=False, default=0.0)
    amount_outstanding = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(20), nullable=False, default=INVOICE_GENERATED)
    last_payment_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    customer = db.relationship("Customer", back_populates="invoices")
    line_items = db.relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.id",
    )
    allocations = db.relationship("PaymentAllocation", back_populates="invoice", lazy="dynamic")

    def __repr__(self):
        return f"<Invoice {self.invoice_number}>"

    @property
    def amount_allocated(self):
        return round(sum(a.amount for a in self.allocations), 2)

    @property
    def is_paid(self):
        return self.status == INVOICE_PAID

    @property
    def is_overdue(self):
        return not self.is_paid and self.due_date is not None and self.due_date < date.today()

    def to_dict(self):
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.billing_name if self.customer else "",
            "invoice_date": self.invoice_date.isoformat(),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "subscription_amount": self.subscription_amount,
            "manual_sales_amount": self.manual_sales_amount,
            "gst_amount": self.gst_amount,
            "total_amount": self.total_amount,
            "amount_paid": self.amount_paid,
            "amount_outstanding": self.amount_outstanding,
            "status": self.status,
        }


class InvoiceLine(db.Model):
    __tablename__ = "invoice_lines"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False)
    line_type = db.Column(db.String(20), nullable=False)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), index=True)
    product_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    line_total = db.Column(db.Float, nullable=False)
    gst_amount = db.Column(db.Float, nullable=False, default=0.0)

    invoice = db.relationship("Invoice", back_populates="line_items")
