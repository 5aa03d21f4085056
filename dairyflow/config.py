"""
App configuration classes, selected by name in create_app().
Values come from the environment (.env is loaded first) with defaults
suited to a single-site SQLite install.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# SQLite lives in the project-root instance/ folder unless DATABASE_URI says otherwise
_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
_INSTANCE_DIR = os.path.join(os.path.dirname(_PACKAGE_DIR), "instance")
_DEFAULT_DB = "sqlite:///" + os.path.join(_INSTANCE_DIR, "dairyflow.db").replace("\\", "/")


def _env_float(name: str, default: str) -> float:
    return float(os.environ.get(name, default))


class Config:
    # ── Core ────────────────────────────────────────────────────────────────
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev-secret-CHANGE-ME")
    SQLALCHEMY_DATABASE_URI: str = os.environ.get("DATABASE_URI", _DEFAULT_DB)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # ── CSRF ────────────────────────────────────────────────────────────────
    # JSON blueprints are exempted in create_app(); anything form-based is not.
    WTF_CSRF_ENABLED = True

    # ── Rate limiting ───────────────────────────────────────────────────────
    RATELIMIT_STORAGE_URI: str = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = "2000 per day;300 per hour"
    ORDER_GENERATION_LIMIT: str = os.environ.get("ORDER_GENERATION_LIMIT", "30 per hour")
    INVOICE_GENERATION_LIMIT: str = os.environ.get("INVOICE_GENERATION_LIMIT", "60 per hour")

    # ── Business rules ──────────────────────────────────────────────────────
    BUSINESS_TIMEZONE: str = os.environ.get("BUSINESS_TIMEZONE", "Asia/Kolkata")
    INVOICE_DUE_DAYS: int = int(os.environ.get("INVOICE_DUE_DAYS", "15"))
    # warn   – over-allocated payments are saved and flagged
    # reject – over-allocation is a validation error
    OVERALLOCATION_POLICY: str = os.environ.get("OVERALLOCATION_POLICY", "warn")
    MAX_REASONABLE_OUTSTANDING: float = _env_float("MAX_REASONABLE_OUTSTANDING", "1000000")

    # ── Talisman (security headers) ─────────────────────────────────────────
    TALISMAN_ENABLED = True
    TALISMAN_CONFIG: dict = {
        "force_https": False,                    # usually behind a LAN proxy
        "strict_transport_security": False,
        "content_security_policy": {"default-src": "'none'", "frame-ancestors": "'none'"},
        "referrer_policy": "no-referrer",
    }


class DevelopmentConfig(Config):
    DEBUG = True
    TALISMAN_ENABLED = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    DEBUG = False
    TALISMAN_ENABLED = True
    TALISMAN_CONFIG = {**Config.TALISMAN_CONFIG, "force_https": True, "strict_transport_security": True}


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    TALISMAN_ENABLED = False
    RATELIMIT_ENABLED = False
    OVERALLOCATION_POLICY = "warn"
    INVOICE_DUE_DAYS = 15
    LOG_LEVEL = "WARNING"


config: dict = {
    "development": DevelopmentConfig,
    "production":  ProductionConfig,
    "testing":     TestingConfig,
    "default":     DevelopmentConfig,
}
