"""Pricing comparison between two extracted pricing documents."""

from __future__ import annotations

from workers.monitor.models import PricingDocument


def compare_pricing(
    old: PricingDocument | None,
    new: PricingDocument | None,
) -> list[str] | None:
    """
    Human-readable plan changes, keyed by lowercase plan name:
    removed plans, price changes, then newly introduced plans.
    """
    if old is None or new is None:
        return None

    old_plans = {p.name.lower(): p for p in old.plans}
    new_plans = {p.name.lower(): p for p in new.plans}

    changes: list[str] = []
    for key, before in old_plans.items():
        after = new_plans.get(key)
        if after is None:
            changes.append(f"Removed: {before.name} (was {before.price})")
        elif before.price != after.price:
            changes.append(f"{before.name}: {before.price} → {after.price}")
    for key, after in new_plans.items():
        if key not in old_plans:
            changes.append(f"New plan: {after.name} at {after.price}")

    return changes or None
