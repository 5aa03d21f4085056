from datetime import datetime
from dairyflow.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    current_price = db.Column(db.Float, nullable=False, default=0.0)
    unit_of_measure = db.Column(db.String(20), nullable=False, default="liter")
    gst_rate = db.Column(db.Float, nullable=False, default=0.0)
    is_subscription_product = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Product {self.code}>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "current_price": self.current_price,
            "unit_of_measure": self.unit_of_measure,
            "gst_rate": self.gst_rate,
            "is_subscription_product": self.is_subscription_product,
        }
