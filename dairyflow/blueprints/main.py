from flask import Blueprint, jsonify
from sqlalchemy import text

from dairyflow.extensions import db, limiter
from dairyflow.services import deliveries, invoices, outstanding, sales
from dairyflow.utils.dates import business_today
from dairyflow.utils.helpers import log_audit
from dairyflow.utils.responses import bad_request, json_payload
from dairyflow.utils.settings import get_settings_by_category

main_bp = Blueprint("main", __name__)


@main_bp.route("/health")
@limiter.exempt
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except Exception:
        db.session.rollback()
        database = "unavailable"
    status = 200 if database == "ok" else 503
    return jsonify(status="ok" if status == 200 else "degraded", database=database), status


@main_bp.route("/")
@main_bp.route("/dashboard")
def dashboard():
    from dairyflow.models.customer import Customer
    from dairyflow.models.subscription import Subscription

    today = business_today()
    month_start = today.replace(day=1)
    stats = {
        "active_customers": Customer.query.filter_by(is_active=True).count(),
        "active_subscriptions": Subscription.query.filter_by(is_active=True).count(),
        "today": today.isoformat(),
        "deliveries_today": deliveries.delivery_stats(today),
        "sales_this_month": sales.sales_stats(month_start, today),
        "invoices": invoices.invoice_stats(today),
        "unapplied_payments": outstanding.unapplied_payment_stats(),
    }
    return jsonify(success=True, stats=stats)


# ── Settings ──────────────────────────────────────────────────────────────────
@main_bp.route("/settings", methods=["GET"])
def list_settings():
    categorized = get_settings_by_category()
    return jsonify(success=True, settings={
        category: [s.to_dict() for s in rows] for category, rows in categorized.items()
    })


@main_bp.route("/settings", methods=["PUT"])
def update_settings():
    """Update the settings named in the body; unknown keys are reported, not created."""
    data = json_payload()
    known = {s.key: s for rows in get_settings_by_category().values() for s in rows}
    unknown = [key for key in data if key not in known]
    invalid = [key for key, value in data.items() if key in known and not known[key].accepts(value)]
    if unknown or invalid:
        return bad_request("Some settings could not be saved", unknown=unknown, invalid=invalid)

    for key, value in data.items():
        known[key].value = "" if value is None else str(value)
    log_audit("updated", "settings", details=", ".join(sorted(data)))
    db.session.commit()
    return jsonify(success=True, settings=[known[key].to_dict() for key in sorted(data)])
