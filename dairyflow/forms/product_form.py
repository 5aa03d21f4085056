from flask_wtf import FlaskForm
from wtforms import StringField, DecimalField, BooleanField
from wtforms.validators import DataRequired, Optional, Length, NumberRange

from dairyflow.utils.gst import MAX_GST_RATE


class ProductForm(FlaskForm):
    name = StringField("Name", validators=[DataRequired(), Length(max=200)])
    code = StringField("Code", validators=[DataRequired(), Length(max=20)])
    current_price = DecimalField("Current price", validators=[DataRequired(), NumberRange(min=0.01)])
    unit_of_measure = StringField("Unit", default="liter", validators=[Optional(), Length(max=20)])
    gst_rate = DecimalField("GST rate (%)", default=0, validators=[
        Optional(), NumberRange(min=0, max=MAX_GST_RATE, message="GST rate must be between 0 and 30"),
    ])
    is_subscription_product = BooleanField("Subscription product", default=True)
