from dairyflow.forms.customer_form import CustomerForm
from dairyflow.forms.product_form import ProductForm
from dairyflow.forms.subscription_form import SubscriptionForm
from dairyflow.forms.modification_form import ModificationForm, BulkModificationForm
from dairyflow.forms.sale_form import SaleForm
from dairyflow.forms.payment_form import PaymentForm
from dairyflow.forms.report_form import OutstandingReportForm

__all__ = [
    "CustomerForm", "ProductForm", "SubscriptionForm", "ModificationForm",
    "BulkModificationForm", "SaleForm", "PaymentForm", "OutstandingReportForm",
]
