"""
Seed script — stores a competitor config (and optionally a tenant record).

Run once after the first migration:

    PYTHONPATH=src uv run python scripts/seed_config.py competitors.json
    PYTHONPATH=src uv run python scripts/seed_config.py competitors.json --tenant acme --tier operator
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from core.kv import SqlKeyValueStore
from workers.monitor.models import Competitor
from workers.state.store import ACTIVE_SUBSCRIBERS_KEY, StateStore

SAMPLE = [
    {
        "name": "Example Co",
        "website": "https://example.com",
        "pages": [
            {"id": "home", "url": "https://example.com", "label": "Homepage", "type": "general"},
            {"id": "pricing", "url": "https://example.com/pricing", "label": "Pricing", "type": "pricing"},
        ],
    },
]


async def seed(path: Path | None, tenant: str | None, tier: str) -> None:
    store = StateStore(SqlKeyValueStore())
    raw = json.loads(path.read_text()) if path else SAMPLE
    competitors = [Competitor.model_validate(c) for c in raw]
    await store.save_competitors(tenant, competitors)
    print(f"  ✅ {len(competitors)} competitor(s) stored (tenant={tenant or '-'})")

    if tenant:
        await store.put_json(f"user:{tenant}", {"tier": tier, "subscriptionStatus": "active"})
        active = await store.active_tenants()
        if tenant not in active:
            await store.put_json(ACTIVE_SUBSCRIBERS_KEY, active + [tenant])
        print(f"  ✅ Tenant {tenant} active on the {tier} tier")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("config", nargs="?", type=Path, help="JSON list of competitors")
    parser.add_argument("--tenant")
    parser.add_argument("--tier", default="recon")
    args = parser.parse_args()
    asyncio.run(seed(args.config, args.tenant, args.tier))


if __name__ == "__main__":
    main()
