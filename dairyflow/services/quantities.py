"""
Subscription quantity resolution and the modification overlay.

A subscription gives the base quantity for a date; active modifications
covering that date adjust it. Both steps are pure apart from the
lookups in `modified_quantity` / `active_modifications_for_date`.
"""
from collections import defaultdict
from datetime import timedelta

from dairyflow.models.modification import Modification, MOD_SKIP, MOD_INCREASE, MOD_DECREASE


# ── Base quantity ────────────────────────────────────────────────────────────

def pattern_day_index(start_date, target_date) -> int:
    # Python's % is non-negative, so dates before the anchor still alternate.
    return (target_date - start_date).days % 2


def pattern_day(start_date, target_date) -> int:
    """1 or 2: which day of the two-day cycle `target_date` falls on."""
    return pattern_day_index(start_date, target_date) + 1


def resolve_base_quantity(subscription, target_date) -> float:
    if subscription.is_pattern:
        if subscription.pattern_start_date is None:
            return 0.0
        if pattern_day_index(subscription.pattern_start_date, target_date) == 0:
            return float(subscription.pattern_day1_quantity or 0.0)
        return float(subscription.pattern_day2_quantity or 0.0)
    return float(subscription.daily_quantity or 0.0)


def pattern_preview(subscription, start_date, days: int = 14) -> list:
    """Upcoming cycle for display: date, quantity, pattern day and weekday."""
    rows = []
    for offset in range(days):
        day = start_date + timedelta(days=offset)
        rows.append({
            "date": day.isoformat(),
            "quantity": resolve_base_quantity(subscription, day),
            "pattern_day": pattern_day(subscription.pattern_start_date, day)
            if subscription.pattern_start_date else None,
            "weekday": day.strftime("%a"),
        })
    return rows


# ── Modification overlay ─────────────────────────────────────────────────────

def _modification_order(mod):
    return (mod.created_at is None, mod.created_at, mod.id or 0)


def apply_modifications(base_quantity, modifications) -> float:
    """
    Skip anywhere in the list forces 0. Otherwise increases and decreases
    apply in creation order; notes are ignored. Never negative.
    """
    modifications = list(modifications)
    if any(m.modification_type == MOD_SKIP for m in modifications):
        return 0.0

    quantity = float(base_quantity or 0.0)
    for mod in sorted(modifications, key=_modification_order):
        change = float(mod.quantity_change or 0.0)
        if mod.modification_type == MOD_INCREASE:
            quantity += change
        elif mod.modification_type == MOD_DECREASE:
            quantity -= change
    return max(0.0, quantity)


def _active_on(target_date):
    return Modification.query.filter(
        Modification.is_active.is_(True),
        Modification.start_date <= target_date,
        Modification.end_date >= target_date,
    )


def modified_quantity(customer_id, product_id, target_date, base_quantity) -> float:
    mods = _active_on(target_date).filter(
        Modification.customer_id == customer_id,
        Modification.product_id == product_id,
    ).all()
    return apply_modifications(base_quantity, mods)


def active_modifications_for_date(target_date) -> dict:
    """{(customer_id, product_id): [Modification, ...]} in one query."""
    grouped = defaultdict(list)
    for mod in _active_on(target_date).order_by(Modification.created_at, Modification.id):
        grouped[(mod.customer_id, mod.product_id)].append(mod)
    return grouped


def resolve_quantity(subscription, target_date, modifications=None) -> float:
    """Base quantity with the overlay applied; looks modifications up when not given."""
    base = resolve_base_quantity(subscription, target_date)
    if modifications is None:
        return modified_quantity(subscription.customer_id, subscription.product_id, target_date, base)
    return apply_modifications(base, modifications)
