"""
ARQ Worker Settings — Registers all background jobs.

Usage:
    arq workers.worker_settings.WorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from core.ai.factory import AIFactory
from core.config import settings
from core.kv import SqlKeyValueStore
from workers.monitor.fetcher import build_http_client
from workers.monitor.orchestrator import ScanDeps, run_monitor
from workers.monitor.orchestrator import scheduled_tick as _scheduled_tick
from workers.state.store import StateStore

logger = logging.getLogger(__name__)


async def scheduled_tick(ctx: dict) -> int:
    """ARQ job: daily scan of every active tenant (or the single tenant)."""
    scans = await _scheduled_tick(ctx["deps"], settings.hosted_mode)
    logger.info("  📊 Scheduled tick finished: %d scan(s)", scans)
    return scans


async def run_tenant_scan(ctx: dict, tenant: str | None = None) -> int:
    """ARQ job: on-demand scan for one tenant. Returns the alert count."""
    alerts = await run_monitor(ctx["deps"], None, tenant)
    return len(alerts)


async def startup(ctx: dict) -> None:
    """Called on worker startup."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx["deps"] = ScanDeps(
        store=StateStore(SqlKeyValueStore()),
        http=build_http_client(),
        ai=AIFactory.from_settings(),
    )
    logger.info("🐕 Worker ready (hosted=%s)", settings.hosted_mode)


async def shutdown(ctx: dict) -> None:
    """Called on worker shutdown."""
    deps: ScanDeps | None = ctx.get("deps")
    if deps is not None:
        await deps.http.aclose()


class WorkerSettings:
    """ARQ worker configuration."""

    functions = [
        scheduled_tick,
        run_tenant_scan,
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = RedisSettings.from_dsn(settings.redis_url)

    # Cron schedule: daily scan at 09:00 UTC by default
    cron_jobs = [
        cron(scheduled_tick, hour=settings.scan_cron_hours, minute={0}, unique=True),
    ]
