"""State API — raw reads of the persisted documents and resets."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from api.deps import get_scan_deps, get_tenant
from workers.monitor.orchestrator import ScanDeps

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["state"])

EMPTY_DASHBOARD = {"competitors": [], "recentChanges": []}


@router.get("/state")
async def read_state(
    deps: ScanDeps = Depends(get_scan_deps),
    tenant: str | None = Depends(get_tenant),
) -> Any:
    return await deps.store.get_json(deps.store.state_key(tenant)) or {}


@router.get("/history")
async def read_history(
    deps: ScanDeps = Depends(get_scan_deps),
    tenant: str | None = Depends(get_tenant),
) -> Any:
    return await deps.store.get_json(deps.store.history_key(tenant)) or []


@router.get("/dashboard")
async def read_dashboard(
    deps: ScanDeps = Depends(get_scan_deps),
    tenant: str | None = Depends(get_tenant),
) -> Any:
    return await deps.store.get_json(deps.store.dashboard_key(tenant)) or EMPTY_DASHBOARD


@router.post("/reset")
async def reset_state(
    deps: ScanDeps = Depends(get_scan_deps),
    tenant: str | None = Depends(get_tenant),
) -> dict[str, Any]:
    """Forget everything; the next scan re-indexes every page."""
    await deps.store.reset(tenant)
    logger.info("State reset (tenant=%s)", tenant or "-")
    return {"success": True, "message": "State reset. The next scan will re-index."}


@router.post("/reset-pricing")
async def reset_pricing(
    deps: ScanDeps = Depends(get_scan_deps),
    tenant: str | None = Depends(get_tenant),
) -> dict[str, Any]:
    config = await deps.store.load_config(tenant)
    await deps.store.reset_pricing(tenant, config)
    return {"success": True, "message": "Pricing reset. The next scan will re-extract."}
