import json
from datetime import datetime
from dairyflow.extensions import db

SETTING_TYPES = ("text", "number", "boolean", "select")
TRUE_VALUES = ("true", "1", "yes", "on")


class Setting(db.Model):
    """
    Runtime-editable business value. A blank value defers to the app
    config key of the same name (upper case).
    """
    __tablename__ = "settings"

    id          = db.Column(db.Integer, primary_key=True)
    key         = db.Column(db.String(128), unique=True, nullable=False, index=True)
    value       = db.Column(db.Text)
    type        = db.Column(db.String(32), default="text", nullable=False)
    description = db.Column(db.String(255))
    category    = db.Column(db.String(64), default="billing", index=True)
    options     = db.Column(db.Text)   # JSON array for select settings
    updated_at  = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_blank(self) -> bool:
        return self.value is None or self.value == ""

    def get_options_list(self) -> list:
        if not self.options:
            return []
        try:
            return json.loads(self.options)
        except (json.JSONDecodeError, TypeError):
            return []

    def get_typed_value(self):
        if self.type == "boolean":
            return str(self.value).lower() in TRUE_VALUES
        if self.type == "number":
            try:
                number = float(self.value)
            except (ValueError, TypeError):
                return 0
            return int(number) if number.is_integer() else number
        if self.type == "select":
            opts = self.get_options_list()
            if opts and self.value not in opts:
                return opts[0]
        return self.value

    def accepts(self, value) -> bool:
        """Whether `value` can be stored; blank is always allowed."""
        if value is None or value == "":
            return True
        if self.type == "number":
            try:
                float(value)
            except (ValueError, TypeError):
                return False
        if self.type == "select":
            return str(value) in self.get_options_list()
        return True

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "effective_value": None if self.is_blank else self.get_typed_value(),
            "type": self.type,
            "description": self.description,
            "category": self.category,
            "options": self.get_options_list(),
        }

    def __repr__(self) -> str:
        return f"<Setting {self.key}={self.value!r}>"
