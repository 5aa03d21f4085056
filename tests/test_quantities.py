from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from dairyflow.services.quantities import (
    apply_modifications, pattern_day, pattern_preview, resolve_base_quantity, resolve_quantity,
)
from conftest import make_daily, make_modification, make_pattern


def _mod(kind, change=None, created=None, mod_id=1):
    return SimpleNamespace(
        modification_type=kind, quantity_change=change,
        created_at=created or datetime(2025, 1, 1), id=mod_id,
    )


def _pattern(day1, day2, start):
    return SimpleNamespace(
        is_pattern=True, pattern_day1_quantity=day1, pattern_day2_quantity=day2,
        pattern_start_date=start, daily_quantity=None,
    )


class TestBaseQuantity:
    def test_daily_returns_daily_quantity(self):
        sub = SimpleNamespace(is_pattern=False, daily_quantity=2.5)
        assert resolve_base_quantity(sub, date(2025, 3, 3)) == 2.5

    def test_pattern_from_start_date(self):
        sub = _pattern(1, 2, date(2025, 1, 1))
        got = [resolve_base_quantity(sub, date(2025, 1, d)) for d in (1, 2, 3)]
        assert got == [1, 2, 1]

    def test_pattern_alternates_every_day(self):
        start = date(2025, 1, 1)
        sub = _pattern(3, 5, start)
        for offset in range(60):
            day = start + timedelta(days=offset)
            expected = 3 if offset % 2 == 0 else 5
            assert resolve_base_quantity(sub, day) == expected

    def test_pattern_before_start_date_keeps_alternating(self):
        sub = _pattern(1, 2, date(2025, 1, 10))
        assert resolve_base_quantity(sub, date(2025, 1, 9)) == 2
        assert resolve_base_quantity(sub, date(2025, 1, 8)) == 1

    def test_pattern_without_start_date_is_zero(self):
        assert resolve_base_quantity(_pattern(1, 2, None), date(2025, 1, 1)) == 0.0

    def test_pattern_day_and_preview(self):
        start = date(2025, 1, 1)
        assert pattern_day(start, date(2025, 1, 2)) == 2
        rows = pattern_preview(_pattern(1, 2, start), start, days=4)
        assert [r["quantity"] for r in rows] == [1, 2, 1, 2]
        assert [r["pattern_day"] for r in rows] == [1, 2, 1, 2]
        assert rows[0]["weekday"] == "Wed"


class TestModificationOverlay:
    def test_increase_adds(self):
        assert apply_modifications(2, [_mod("Increase", 1)]) == 3

    def test_decrease_floors_at_zero(self):
        assert apply_modifications(2, [_mod("Decrease", 5)]) == 0

    def test_skip_wins_regardless_of_order(self):
        mods = [
            _mod("Increase", 4, datetime(2025, 1, 1), 1),
            _mod("Skip", None, datetime(2025, 1, 2), 2),
            _mod("Increase", 1, datetime(2025, 1, 3), 3),
        ]
        assert apply_modifications(2, mods) == 0

    def test_skip_on_zero_base(self):
        assert apply_modifications(0, [_mod("Skip")]) == 0

    def test_notes_are_ignored(self):
        assert apply_modifications(2, [_mod("Add Note")]) == 2

    def test_changes_apply_in_creation_order(self):
        # The floor applies to the final result only.
        mods = [
            _mod("Increase", 3, datetime(2025, 1, 2), 2),
            _mod("Decrease", 4, datetime(2025, 1, 1), 1),
        ]
        assert apply_modifications(2, mods) == 1

    @pytest.mark.parametrize("kind,change,expected", [
        ("Increase", 0.5, 2.5),
        ("Decrease", 0.5, 1.5),
        ("Skip", None, 0),
    ])
    def test_single_modification(self, kind, change, expected):
        assert apply_modifications(2, [_mod(kind, change)]) == pytest.approx(expected)


class TestResolveQuantity:
    def test_daily_with_increase(self, customer, milk):
        sub = make_daily(customer, milk, 2)
        make_modification(customer, milk, "Increase", date(2025, 5, 1), date(2025, 5, 3), change=1)
        assert resolve_quantity(sub, date(2025, 5, 2)) == 3
        assert resolve_quantity(sub, date(2025, 5, 4)) == 2

    def test_inactive_modification_ignored(self, customer, milk):
        sub = make_daily(customer, milk, 2)
        make_modification(customer, milk, "Skip", date(2025, 5, 1), active=False)
        assert resolve_quantity(sub, date(2025, 5, 1)) == 2

    def test_modification_for_other_product_ignored(self, customer, milk):
        from conftest import make_product
        curd = make_product(code="CURD", name="Curd", price=40)
        sub = make_daily(customer, milk, 2)
        make_modification(customer, curd, "Skip", date(2025, 5, 1))
        assert resolve_quantity(sub, date(2025, 5, 1)) == 2

    def test_pattern_with_skip(self, customer, milk):
        sub = make_pattern(customer, milk, 1, 2, date(2025, 1, 1))
        make_modification(customer, milk, "Skip", date(2025, 1, 2))
        assert resolve_quantity(sub, date(2025, 1, 1)) == 1
        assert resolve_quantity(sub, date(2025, 1, 2)) == 0
        assert resolve_quantity(sub, date(2025, 1, 3)) == 1
