from datetime import datetime, timezone
from dairyflow.extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id          = db.Column(db.Integer, primary_key=True)
    action      = db.Column(db.String(64),  nullable=False)   # generated, deleted, allocated …
    resource    = db.Column(db.String(64))                    # daily_orders, invoice, payment …
    resource_id = db.Column(db.Integer)
    details     = db.Column(db.Text)
    ip_address  = db.Column(db.String(45))
    created_at  = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), index=True)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.resource} id={self.resource_id}>"
