"""Subscription tiers. Only the limits the engine enforces are modelled."""

from __future__ import annotations

from dataclasses import dataclass

UNLIMITED_HISTORY_DAYS = 99999


@dataclass(frozen=True, slots=True)
class Tier:
    name: str
    competitors: int
    pages: int
    scans_per_day: int
    history_days: int  # -1 = unlimited

    @property
    def retention_days(self) -> int:
        return UNLIMITED_HISTORY_DAYS if self.history_days == -1 else self.history_days


TIERS: dict[str, Tier] = {
    "recon": Tier("Recon", competitors=3, pages=6, scans_per_day=1, history_days=30),
    "operator": Tier("Operator", competitors=15, pages=60, scans_per_day=1, history_days=90),
    "commander": Tier("Commander", competitors=25, pages=100, scans_per_day=2, history_days=365),
    "strategic": Tier("Strategic", competitors=50, pages=200, scans_per_day=4, history_days=-1),
}


def get_tier(name: str | None) -> Tier:
    """Tier by name; unknown names get the entry tier."""
    return TIERS.get(name or "", TIERS["recon"])
