from datetime import date

import pytest

from dairyflow.utils.dates import financial_year_prefix, month_label
from dairyflow.utils.gst import gst_from_inclusive, is_valid_gst_rate, split_inclusive
from dairyflow.utils.helpers import parse_date, to_formdata
from dairyflow.utils.settings import get_setting, set_setting


def test_gst_split():
    assert gst_from_inclusive(118, 18) == 18.0
    assert gst_from_inclusive(100, 0) == 0.0
    assert split_inclusive(105, 5) == {"base_amount": 100.0, "gst_amount": 5.0, "total_amount": 105.0}


@pytest.mark.parametrize("rate,ok", [(0, True), (30, True), (30.5, False), (-1, False), ("x", False)])
def test_gst_rate_bounds(rate, ok):
    assert is_valid_gst_rate(rate) is ok


def test_financial_year_prefix():
    assert financial_year_prefix(date(2026, 1, 15)) == "202526"
    assert financial_year_prefix(date(2026, 4, 1)) == "202627"


def test_month_label():
    assert month_label("2025-08") == "August 2025"


def test_parse_date():
    assert parse_date("2025-06-01") == date(2025, 6, 1)
    assert parse_date("2025-06-01T10:00:00") == date(2025, 6, 1)
    assert parse_date("junk", "fallback") == "fallback"
    assert parse_date(None) is None


def test_to_formdata_booleans_and_lists():
    data = to_formdata({"a": True, "b": False, "c": None, "d": [1, 2], "e": 3})
    assert data.getlist("a") == ["true"]
    assert "b" not in data and "c" not in data
    assert data.getlist("d") == ["1", "2"]
    assert data["e"] == "3"


def test_settings_fall_back_to_config(app):
    assert get_setting("invoice_due_days") == 15
    set_setting("invoice_due_days", 30)
    assert get_setting("invoice_due_days") == 30
    assert get_setting("not_a_setting", "x") == "x"


def test_set_setting_checks_type(app):
    with pytest.raises(ValueError):
        set_setting("overallocation_policy", "sometimes")
    with pytest.raises(ValueError):
        set_setting("invoice_due_days", "soon")
