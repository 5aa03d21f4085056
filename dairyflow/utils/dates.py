"""
Business-calendar helpers. "Today" is the business day in
BUSINESS_TIMEZONE, not the server's local date.
"""
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "Asia/Kolkata"


def business_today() -> date:
    tz_name = DEFAULT_TIMEZONE
    if has_app_context():
        tz_name = current_app.config.get("BUSINESS_TIMEZONE", DEFAULT_TIMEZONE)
    return datetime.now(ZoneInfo(tz_name)).date()


def financial_year(on: date) -> tuple:
    """(start_year, end_year) of the April–March financial year containing `on`."""
    start = on.year if on.month >= 4 else on.year - 1
    return start, start + 1


def financial_year_prefix(on: date) -> str:
    start, end = financial_year(on)
    return f"{start}{str(end)[-2:]}"


def month_key(on: date) -> str:
    return on.strftime("%Y-%m")


def month_label(key: str) -> str:
    """'2025-08' -> 'August 2025'."""
    return datetime.strptime(key, "%Y-%m").strftime("%B %Y")


def date_range(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
