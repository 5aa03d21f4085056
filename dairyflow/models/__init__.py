# Import all models so SQLAlchemy can discover them for db.create_all()
from dairyflow.models.setting import Setting
from dairyflow.models.audit import AuditLog
from dairyflow.models.route import Route
from dairyflow.models.product import Product
from dairyflow.models.customer import Customer
from dairyflow.models.subscription import Subscription
from dairyflow.models.modification import Modification
from dairyflow.models.order import DailyOrder
from dairyflow.models.delivery import Delivery
from dairyflow.models.sale import Sale
from dairyflow.models.invoice import Invoice, InvoiceLine
from dairyflow.models.payment import Payment, PaymentAllocation

__all__ = [
    "Setting", "AuditLog", "Route", "Product", "Customer", "Subscription",
    "Modification", "DailyOrder", "Delivery", "Sale", "Invoice", "InvoiceLine",
    "Payment", "PaymentAllocation",
]
