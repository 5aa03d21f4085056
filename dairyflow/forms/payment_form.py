from flask_wtf import FlaskForm
from wtforms import IntegerField, DecimalField, DateField, StringField, TextAreaField
from wtforms.validators import DataRequired, Optional, NumberRange, Length, ValidationError


class PaymentForm(FlaskForm):
    customer_id = IntegerField("Customer", validators=[DataRequired()])
    amount = DecimalField("Amount", validators=[DataRequired(), NumberRange(min=0.01, message="Payment amount must be positive")])
    payment_date = DateField("Payment date", validators=[DataRequired()])
    payment_method = StringField("Method", default="cash", validators=[Optional(), Length(max=50)])
    period_start = DateField("Period start", validators=[Optional()])
    period_end = DateField("Period end", validators=[Optional()])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=500)])

    def validate_period_end(self, field):
        if self.period_start.data and field.data and field.data < self.period_start.data:
            raise ValidationError("Period end date must be after or equal to period start date")
