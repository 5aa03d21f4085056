from flask_wtf import FlaskForm
from wtforms import DateField, SelectField, SelectMultipleField, StringField
from wtforms.validators import DataRequired, Optional, ValidationError

CUSTOMER_SELECTIONS = (
    "all",
    "with_outstanding",
    "with_subscription_and_outstanding",
    "with_credit",
    "with_any_balance",
    "selected",
)
SORT_KEYS = (
    "customer.billing_name",
    "opening_balance",
    "subscription_amount",
    "manual_sales_amount",
    "payments_amount",
    "total_outstanding",
)


class OutstandingReportForm(FlaskForm):
    start_date = DateField("From", validators=[DataRequired()])
    end_date = DateField("To", validators=[DataRequired()])
    customer_selection = SelectField(
        "Customers", choices=[(c, c) for c in CUSTOMER_SELECTIONS], default="with_outstanding"
    )
    selected_customer_ids = SelectMultipleField("Selected customers", coerce=int, validate_choice=False)
    sort_key = SelectField(
        "Sort by", choices=[(k, k) for k in SORT_KEYS], default="customer.billing_name",
        validators=[Optional()],
    )
    sort_direction = StringField("Direction", default="asc", validators=[Optional()])

    def validate_end_date(self, field):
        if self.start_date.data and field.data and field.data < self.start_date.data:
            raise ValidationError("End date must be after or equal to start date")

    def validate_selected_customer_ids(self, field):
        if self.customer_selection.data == "selected" and not field.data:
            raise ValidationError("Select at least one customer")

    def validate_sort_direction(self, field):
        if field.data and field.data not in ("asc", "desc"):
            raise ValidationError("Direction must be asc or desc")
