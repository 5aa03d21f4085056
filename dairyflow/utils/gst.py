"""
GST arithmetic. Rates are percentages (5 means 5 %).
Sale totals are GST inclusive; invoice lines carry the extracted GST.
"""
from dairyflow.utils.helpers import round_money

MAX_GST_RATE = 30.0


def is_valid_gst_rate(rate) -> bool:
    try:
        rate = float(rate)
    except (TypeError, ValueError):
        return False
    return 0.0 <= rate <= MAX_GST_RATE


def gst_from_inclusive(total, rate) -> float:
    """GST component of a GST-inclusive amount."""
    rate = float(rate or 0.0)
    if rate <= 0:
        return 0.0
    return round_money(float(total) * rate / (100.0 + rate))


def base_from_inclusive(total, rate) -> float:
    return round_money(float(total) - gst_from_inclusive(total, rate))


def gst_from_exclusive(base, rate) -> float:
    return round_money(float(base) * float(rate or 0.0) / 100.0)


def split_inclusive(total, rate) -> dict:
    gst = gst_from_inclusive(total, rate)
    return {
        "base_amount": round_money(float(total) - gst),
        "gst_amount": gst,
        "total_amount": round_money(total),
    }
