from datetime import datetime
from dairyflow.extensions import db

MOD_SKIP = "Skip"
MOD_INCREASE = "Increase"
MOD_DECREASE = "Decrease"
MOD_NOTE = "Add Note"
MODIFICATION_TYPES = (MOD_SKIP, MOD_INCREASE, MOD_DECREASE, MOD_NOTE)


class Modification(db.Model):
    __tablename__ = "modifications"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    modification_type = db.Column(db.String(10), nullable=False)
    start_date = db.Column(db.Date, nullable=False, index=True)
    end_date = db.Column(db.Date, nullable=False, index=True)   # inclusive
    quantity_change = db.Column(db.Float)
    reason = db.Column(db.String(500), default="")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    customer = db.relationship("Customer")
    product = db.relationship("Product")

    def __repr__(self):
        return f"<Modification {self.modification_type} {self.start_date}..{self.end_date}>"

    def covers(self, target_date) -> bool:
        return self.start_date <= target_date <= self.end_date

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "modification_type": self.modification_type,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "quantity_change": self.quantity_change,
            "reason": self.reason,
            "is_active": self.is_active,
        }
