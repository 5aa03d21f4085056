from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField, DecimalField, DateField, TextAreaField
from wtforms.validators import DataRequired, Optional, NumberRange, Length

from dairyflow.models.sale import SALE_TYPES, SALE_CREDIT


class SaleForm(FlaskForm):
    customer_id = IntegerField("Customer", validators=[Optional()])
    product_id = IntegerField("Product", validators=[DataRequired()])
    quantity = DecimalField("Quantity", validators=[DataRequired(), NumberRange(min=0.001)])
    unit_price = DecimalField("Unit price", validators=[DataRequired(), NumberRange(min=0.01)])
    sale_type = SelectField("Sale type", choices=[(t, t) for t in SALE_TYPES])
    sale_date = DateField("Sale date", validators=[DataRequired()])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=500)])

    def validate(self, extra_validators=None):
        # Optional() ends the customer_id chain before inline validators run.
        ok = super().validate(extra_validators)
        if self.sale_type.data == SALE_CREDIT and not self.customer_id.data:
            self.customer_id.errors.append("Customer is required for credit sales")
            ok = False
        return ok
