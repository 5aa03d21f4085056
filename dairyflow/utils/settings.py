"""
Read/write helpers for the settings table.
A missing or blank setting falls back to app.config[KEY], then `default`.
"""
from flask import current_app

from dairyflow.models.setting import Setting
from dairyflow.extensions import db


def get_setting(key: str, default=None):
    setting = Setting.query.filter_by(key=key).first()
    if setting is None or setting.is_blank:
        return current_app.config.get(key.upper(), default)
    return setting.get_typed_value()


def set_setting(key: str, value) -> Setting:
    """Upsert and commit. Raises ValueError when the value does not fit the setting's type."""
    value = "" if value is None else str(value)
    setting = Setting.query.filter_by(key=key).first()
    if setting is None:
        setting = Setting(key=key)
        db.session.add(setting)
    elif not setting.accepts(value):
        raise ValueError(f"Invalid value for {key}: {value!r}")
    setting.value = value
    db.session.commit()
    return setting


def get_all_settings() -> list:
    return Setting.query.order_by(Setting.category, Setting.key).all()


def get_settings_by_category() -> dict:
    """{category: [Setting, ...]} in key order."""
    categorized: dict = {}
    for s in get_all_settings():
        categorized.setdefault(s.category or "general", []).append(s)
    return categorized
