"""
Extension singletons, bound to the app in create_app().
Services and blueprints import them from here.
"""
from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

db = SQLAlchemy()
csrf = CSRFProtect()
migrate = Migrate(render_as_batch=True)   # SQLite needs batch ALTERs
# Storage and default limits come from RATELIMIT_* config keys.
limiter = Limiter(key_func=get_remote_address)


def config_limit(key: str):
    """Per-route limit read from app config at request time."""
    return lambda: current_app.config[key]
