"""Smoke test: run one monitor scan against the configured database."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.ai.factory import AIFactory  # noqa: E402
from core.kv import SqlKeyValueStore  # noqa: E402
from workers.monitor.fetcher import build_http_client  # noqa: E402
from workers.monitor.orchestrator import ScanDeps, run_monitor  # noqa: E402
from workers.state.store import StateStore  # noqa: E402


async def main(tenant: str | None) -> None:
    print("🚀 Starting Smoke Test: Monitor Pipeline")
    async with build_http_client() as http:
        deps = ScanDeps(
            store=StateStore(SqlKeyValueStore()),
            http=http,
            ai=AIFactory.from_settings(),
        )
        alerts = await run_monitor(deps, None, tenant)

    print(f"\n🏁 Finished: {len(alerts)} alert(s)")
    for alert in alerts:
        print(f"\n[{alert.priority}] {alert.text}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
