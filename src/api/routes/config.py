"""Config API — competitors, settings, setup helpers, manual scans."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from api.deps import get_scan_deps, get_tenant
from core.notifications.slack import send_slack_message
from core.tiers import get_tier
from workers.monitor.announcements import DEFAULT_ANNOUNCEMENT_KEYWORDS
from workers.monitor.discovery import detect_rss_feed, discover_pages
from workers.monitor.models import Competitor, MonitorSettings
from workers.monitor.orchestrator import ScanDeps, trigger_scan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/config", tags=["config"])

MAX_COMPETITORS = 25
MAX_PAGES_PER_COMPETITOR = 4
SLACK_TEST_MESSAGE = "ScopeHound is connected. Setup wizard test successful."


# ── Request Schemas ───────────────────────────────────────────────────

class CompetitorsRequest(BaseModel):
    competitors: Any = None


class SlackTestRequest(BaseModel):
    webhookUrl: str | None = None


class UrlRequest(BaseModel):
    url: str | None = None


# ── Validation ────────────────────────────────────────────────────────

async def _check_limits(deps: ScanDeps, tenant: str | None, comps: list[dict]) -> str | None:
    if not tenant:
        if len(comps) > MAX_COMPETITORS:
            return f"Maximum {MAX_COMPETITORS} competitors"
        return None

    record = await deps.store.load_tenant(tenant) or {}
    tier = get_tier(record.get("tier"))
    if len(comps) > tier.competitors:
        return f"Your {tier.name} plan allows {tier.competitors} competitors."
    total_pages = sum(len(c.get("pages") or []) for c in comps)
    if total_pages > tier.pages:
        return f"Your {tier.name} plan allows {tier.pages} pages."
    return None


def _validate_competitors(comps: list[Any]) -> list[Competitor]:
    validated = []
    for raw in comps:
        if not isinstance(raw, dict) or not raw.get("name") or not raw.get("website"):
            raise HTTPException(status_code=400, detail="Competitor missing name or website")
        pages = raw.get("pages") or []
        if not pages:
            raise HTTPException(status_code=400, detail=f"{raw['name']}: needs at least one page")
        if len(pages) > MAX_PAGES_PER_COMPETITOR:
            raise HTTPException(
                status_code=400,
                detail=f"{raw['name']}: maximum {MAX_PAGES_PER_COMPETITOR} pages per competitor",
            )
        try:
            validated.append(Competitor.model_validate(raw))
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=f"{raw['name']}: invalid page definition") from exc
    return validated


# ── Endpoints ─────────────────────────────────────────────────────────

@router.get("")
async def read_config(
    deps: ScanDeps = Depends(get_scan_deps),
    tenant: str | None = Depends(get_tenant),
) -> dict[str, Any]:
    config = await deps.store.load_config(tenant)
    return {
        "competitors": [c.to_json_dict(exclude_none=True) for c in config.competitors],
        "settings": config.settings.to_json_dict(),
    }


@router.post("/competitors")
async def save_competitors(
    req: CompetitorsRequest,
    deps: ScanDeps = Depends(get_scan_deps),
    tenant: str | None = Depends(get_tenant),
) -> dict[str, Any]:
    """Replace the competitor list after shape and plan-limit checks."""
    comps = req.competitors
    if not isinstance(comps, list):
        raise HTTPException(status_code=400, detail="competitors must be an array")

    limit_error = await _check_limits(deps, tenant, comps)
    if limit_error:
        raise HTTPException(status_code=400, detail=limit_error)

    competitors = _validate_competitors(comps)
    await deps.store.save_competitors(tenant, competitors)
    logger.info("Saved %d competitors (tenant=%s)", len(competitors), tenant or "-")
    return {"success": True, "count": len(competitors)}


@router.post("/settings")
async def save_settings(
    body: dict[str, Any],
    deps: ScanDeps = Depends(get_scan_deps),
    tenant: str | None = Depends(get_tenant),
) -> dict[str, bool]:
    normalized = {
        "slackWebhookUrl": body.get("slackWebhookUrl") or None,
        "productHuntToken": body.get("productHuntToken") or None,
        "productHuntTopics": body.get("productHuntTopics") or [],
        "announcementKeywords": body.get("announcementKeywords") or DEFAULT_ANNOUNCEMENT_KEYWORDS,
        "phMinVotes": body.get("phMinVotes") if body.get("phMinVotes") is not None else 0,
    }
    try:
        monitor_settings = MonitorSettings.model_validate(normalized)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors()[0]["msg"]) from exc
    await deps.store.save_settings(tenant, monitor_settings)
    return {"success": True}


@router.post("/test-slack")
async def test_slack(
    req: SlackTestRequest,
    deps: ScanDeps = Depends(get_scan_deps),
) -> dict[str, bool]:
    if not req.webhookUrl:
        raise HTTPException(status_code=400, detail="webhookUrl required")
    sent = await send_slack_message(deps.http, req.webhookUrl, SLACK_TEST_MESSAGE)
    return {"success": sent}


@router.post("/trigger-scan")
async def trigger(
    deps: ScanDeps = Depends(get_scan_deps),
    tenant: str | None = Depends(get_tenant),
) -> dict[str, Any]:
    """Run a scan now; concurrent triggers join the running scan."""
    result = await trigger_scan(deps, tenant)
    return {"success": True, **result}


@router.post("/detect-rss")
async def detect_rss(
    req: UrlRequest,
    deps: ScanDeps = Depends(get_scan_deps),
) -> dict[str, Any]:
    if not req.url:
        raise HTTPException(status_code=400, detail="url required")
    feed_url = await detect_rss_feed(deps.http, req.url)
    return {"found": feed_url is not None, "feedUrl": feed_url}


@router.post("/discover-pages")
async def discover(
    req: UrlRequest,
    deps: ScanDeps = Depends(get_scan_deps),
) -> dict[str, Any]:
    if not req.url:
        raise HTTPException(status_code=400, detail="url required")
    pages = await discover_pages(deps.http, req.url)
    return {"pages": [p.to_json_dict() for p in pages]}
