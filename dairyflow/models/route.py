from datetime import datetime
from dairyflow.extensions import db


class Route(db.Model):
    __tablename__ = "routes"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.String(300), default="")
    personnel_name = db.Column(db.String(100), default="")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    customers = db.relationship("Customer", back_populates="route", lazy="dynamic")

    def __repr__(self):
        return f"<Route {self.name}>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "personnel_name": self.personnel_name,
        }
