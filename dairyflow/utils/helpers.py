"""
Miscellaneous helpers used across services and blueprints.
"""
from datetime import date

from flask import has_request_context, request
from werkzeug.datastructures import MultiDict

from dairyflow.models.audit import AuditLog
from dairyflow.extensions import db


def log_audit(
    action: str,
    resource: str = None,
    resource_id: int = None,
    details: str = None,
) -> None:
    """
    Append an audit log entry to the current session.
    Caller is responsible for committing (normally via unit_of_work()).
    """
    entry = AuditLog(
        action=action,
        resource=resource,
        resource_id=resource_id,
        details=details,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)


def round_money(value) -> float:
    return round(float(value or 0.0), 2)


def parse_date(value, default=None):
    """Accept a date, an ISO string or None."""
    if value is None or value == "":
        return default
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return default


def to_formdata(payload: dict) -> MultiDict:
    """
    Turn a JSON payload into form data WTForms can validate.
    Booleans become "true"/"" because BooleanField treats any non-empty
    string (including "false") as checked.
    """
    items = []
    for key, value in (payload or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            if value:
                items.append((key, "true"))
            continue
        if isinstance(value, (list, tuple)):
            items.extend((key, str(v)) for v in value)
            continue
        items.append((key, str(value)))
    return MultiDict(items)


def form_errors(form) -> str:
    """Flatten WTForms errors into one message."""
    parts = []
    for field, errors in form.errors.items():
        label = getattr(form, field).label.text if hasattr(form, field) else field
        parts.append(f"{label}: {'; '.join(str(e) for e in errors)}")
    return " | ".join(parts)
