"""
DairyFlow – Flask application factory.
"""
import importlib
import logging
import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from dairyflow.config import config
from dairyflow.extensions import db, csrf, limiter, migrate


def create_app(config_name: str = "default") -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name])

    _configure_logging(app)

    # Ensure instance directory exists (SQLite lives here)
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Initialise extensions ────────────────────────────────────────────────
    db.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
    migrate.init_app(app, db)

    if app.config.get("TALISMAN_ENABLED"):
        from flask_talisman import Talisman
        Talisman(app, **app.config.get("TALISMAN_CONFIG", {}))

    # ── Register blueprints ──────────────────────────────────────────────────
    from dairyflow.blueprints.main import main_bp
    from dairyflow.blueprints.customers import customers_bp
    from dairyflow.blueprints.products import products_bp
    from dairyflow.blueprints.subscriptions import subscriptions_bp
    from dairyflow.blueprints.modifications import modifications_bp
    from dairyflow.blueprints.orders import orders_bp
    from dairyflow.blueprints.deliveries import deliveries_bp
    from dairyflow.blueprints.sales import sales_bp
    from dairyflow.blueprints.invoices import invoices_bp
    from dairyflow.blueprints.outstanding import outstanding_bp
    from dairyflow.blueprints.payments import payments_bp

    json_blueprints = [
        main_bp, customers_bp, products_bp, subscriptions_bp, modifications_bp,
        orders_bp, deliveries_bp, sales_bp, invoices_bp, outstanding_bp, payments_bp,
    ]
    for bp in json_blueprints:
        # JSON API: clients send JSON bodies, not HTML forms with a CSRF token
        csrf.exempt(bp)
        app.register_blueprint(bp)

    # ── Error handlers ───────────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return jsonify(success=False, error="Not found"), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(success=False, error="Method not allowed"), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify(success=False, error=f"Rate limit exceeded: {e.description}"), 429

    @app.errorhandler(500)
    def internal_error(e):
        db.session.rollback()
        return jsonify(success=False, error="Internal server error"), 500

    @app.errorhandler(Exception)
    def unhandled(e):
        if isinstance(e, HTTPException):
            return e
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return jsonify(success=False, error="Internal server error"), 500

    # ── Database + seed ──────────────────────────────────────────────────────
    with app.app_context():
        # Register all models with SQLAlchemy before create_all().
        importlib.import_module("dairyflow.models")
        db.create_all()
        _seed_settings()

    return app


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("dairyflow").setLevel(level)
    app.logger.setLevel(level)


# ── Seed helper ──────────────────────────────────────────────────────────────
def _seed_settings() -> None:
    """Insert default settings that are missing; existing values are kept."""
    from dairyflow.models.setting import Setting

    # (key, value, type, description, category, options_json)
    setting_defs = [
        ("business_name",          "DairyFlow",  "text",   "Business name shown on invoices and reports",        "general", None),
        ("invoice_due_days",       "",           "number", "Days from invoice date to due date (blank = config)", "billing", None),
        ("overallocation_policy",  "",           "select", "What happens when allocations exceed a payment",     "billing", '["warn","reject"]'),
    ]
    existing = {s.key for s in Setting.query.all()}
    added = False
    for key, value, stype, desc, cat, opts in setting_defs:
        if key in existing:
            continue
        db.session.add(Setting(key=key, value=value, type=stype,
                               description=desc, category=cat, options=opts))
        added = True
    if added:
        db.session.commit()
