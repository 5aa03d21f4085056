from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField, DecimalField, DateField, BooleanField
from wtforms.validators import DataRequired, Optional, NumberRange

from dairyflow.models.subscription import SUBSCRIPTION_TYPES, SUBSCRIPTION_PATTERN


class SubscriptionForm(FlaskForm):
    customer_id = IntegerField("Customer", validators=[DataRequired()])
    product_id = IntegerField("Product", validators=[DataRequired()])
    subscription_type = SelectField("Type", choices=[(t, t) for t in SUBSCRIPTION_TYPES])
    daily_quantity = DecimalField("Daily quantity", validators=[Optional(), NumberRange(min=0.001)])
    pattern_day1_quantity = DecimalField("Day 1 quantity", validators=[Optional(), NumberRange(min=0.001)])
    pattern_day2_quantity = DecimalField("Day 2 quantity", validators=[Optional(), NumberRange(min=0.001)])
    pattern_start_date = DateField("Pattern start date", validators=[Optional()])
    is_active = BooleanField("Active", default=True)

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators):
            return False
        if self.subscription_type.data == SUBSCRIPTION_PATTERN:
            ok = (self.pattern_day1_quantity.data and self.pattern_day2_quantity.data
                  and self.pattern_start_date.data)
        else:
            ok = bool(self.daily_quantity.data)
        if not ok:
            self.subscription_type.errors.append(
                "Please provide valid quantities for the selected subscription type"
            )
            return False
        return True
