from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField, DecimalField, DateField, StringField
from wtforms.validators import DataRequired, Optional, Length, ValidationError

from dairyflow.models.modification import MODIFICATION_TYPES, MOD_INCREASE, MOD_DECREASE


class _ModificationFields(FlaskForm):
    product_id = IntegerField("Product", validators=[DataRequired()])
    modification_type = SelectField("Type", choices=[(t, t) for t in MODIFICATION_TYPES])
    start_date = DateField("Start date", validators=[DataRequired()])
    end_date = DateField("End date", validators=[DataRequired()])
    quantity_change = DecimalField("Quantity change", validators=[Optional()])
    reason = StringField("Reason", validators=[Optional(), Length(max=500)])

    def validate_end_date(self, field):
        if self.start_date.data and field.data and field.data < self.start_date.data:
            raise ValidationError("End date must be after or equal to start date")

    def validate(self, extra_validators=None):
        ok = super().validate(extra_validators)
        if self.modification_type.data in (MOD_INCREASE, MOD_DECREASE):
            change = self.quantity_change.data
            if change is None or change <= 0:
                self.quantity_change.errors.append(
                    "Quantity change is required for increase/decrease modifications"
                )
                ok = False
        return ok


class ModificationForm(_ModificationFields):
    customer_id = IntegerField("Customer", validators=[DataRequired()])


class BulkModificationForm(_ModificationFields):
    """Same change applied to several customers at once."""
