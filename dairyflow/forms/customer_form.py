from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField, BooleanField, SelectField, IntegerField, DecimalField
from wtforms.validators import DataRequired, Optional, Length, NumberRange, Regexp, ValidationError

from dairyflow.models.customer import DELIVERY_TIMES, PAYMENT_METHODS
from dairyflow.extensions import db
from dairyflow.models.route import Route


class CustomerForm(FlaskForm):
    billing_name = StringField("Billing name", validators=[DataRequired(), Length(max=100)])
    contact_person = StringField("Contact person", validators=[Optional(), Length(max=100)])
    address = TextAreaField("Address", validators=[Optional(), Length(max=500)])
    phone_primary = StringField("Primary phone", validators=[
        Optional(), Length(min=10, max=15),
        Regexp(r"^\+?[\d\s\-()]+$", message="Invalid phone number format"),
    ])
    route_id = IntegerField("Route", validators=[Optional()])
    delivery_time = SelectField("Delivery time", choices=[(t, t) for t in DELIVERY_TIMES], default="Morning")
    payment_method = SelectField("Payment method", choices=[(m, m) for m in PAYMENT_METHODS], default="Monthly")
    billing_cycle_day = IntegerField("Billing cycle day", default=1, validators=[Optional(), NumberRange(1, 31)])
    opening_balance = DecimalField("Opening balance", default=0, validators=[
        Optional(), NumberRange(min=0, message="Opening balance cannot be negative"),
    ])
    is_active = BooleanField("Active", default=True)

    def validate_route_id(self, field):
        if field.data and db.session.get(Route, field.data) is None:
            raise ValidationError("Please select a valid route")
