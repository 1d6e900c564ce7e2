"""
Monitor Orchestrator
====================
One scan of one tenant:
1. Load config (unless supplied) and state (migrating legacy documents)
2. For each competitor page: fetch → normalize → hash/SEO/diff → LLM on change
3. Blog RSS and launch-feed sub-machines
4. Persist state, pruned history and the dashboard projection, once
5. Dispatch the prioritized digest

Work is strictly sequential; the state document is owned by the scan
and written only after all detection completes. A crash before the
write leaves state untouched, so the next scan re-observes the change.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from core.ai.base import BaseAIProvider
from workers.alerts.dispatcher import dispatch_alerts
from workers.alerts.formatter import (
    format_announcement_alert,
    format_blog_alert,
    format_launch_alert,
    format_page_change_alert,
    format_seo_alert,
)
from workers.monitor.analyst import (
    analyze_page_change,
    classify_announcement,
    default_analysis,
    extract_pricing,
)
from workers.monitor.announcements import detect_announcement
from workers.monitor.differ import compute_text_diff
from workers.monitor.fetcher import fetch_url
from workers.monitor.models import (
    Alert,
    Competitor,
    CompetitorState,
    DiffExcerpt,
    EventType,
    HistoryEvent,
    LaunchFeedState,
    LaunchTopic,
    MonitorConfig,
    MonitorState,
    Page,
    PageState,
    PageStatus,
    PageType,
    Priority,
    ScanResult,
    SeoSignals,
)
from workers.monitor.normalizer import hash_content, html_to_text
from workers.monitor.pricing import compare_pricing
from workers.monitor.producthunt import fetch_product_hunt_posts
from workers.monitor.rss import parse_rss_feed
from workers.monitor.seo import compare_seo_signals, extract_seo_signals
from workers.state.dashboard import build_dashboard_projection
from workers.state.store import StateStore, iso, prune_history

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScanDeps:
    """Collaborators shared by every scan of a process."""

    store: StateStore
    http: httpx.AsyncClient
    ai: BaseAIProvider | None = None
    clock: Callable[[], datetime] = field(default=utcnow)


# ══════════════════════════════════════════════════════════════════════
# PAGES
# ══════════════════════════════════════════════════════════════════════

def _record_seo_change(
    result: ScanResult,
    competitor: Competitor,
    page: Page,
    old_seo: SeoSignals | None,
    new_seo: SeoSignals,
    now: str,
) -> None:
    changes = compare_seo_signals(old_seo, new_seo)
    if not changes:
        return
    logger.info("    SEO changed (%d field(s))", len(changes))
    result.alerts.append(format_seo_alert(competitor.name, page.label, page.url, changes))
    result.events.append(
        HistoryEvent(
            date=now,
            competitor=competitor.name,
            page_id=page.id,
            page_label=page.label,
            type=EventType.SEO_CHANGE,
            priority=Priority.LOW,
            summary=f"SEO changed: {', '.join(c.field for c in changes)}",
        )
    )


async def process_page(
    deps: ScanDeps,
    result: ScanResult,
    competitor: Competitor,
    cs: CompetitorState,
    page: Page,
) -> None:
    """Advance one page's state machine (NEVER_SEEN / STABLE)."""
    logger.info("  %s...", page.label)
    content = await fetch_url(deps.http, page.url)
    if content is None:
        return

    ps = cs.pages.get(page.id) or PageState()
    new_hash = hash_content(content)
    new_text = html_to_text(content)
    new_seo = extract_seo_signals(content)
    old_seo = cs.seo.get(page.id)
    now = iso(deps.clock())

    if ps.status == PageStatus.NEVER_SEEN:
        logger.info("    Indexing (first run)")
        if page.type == PageType.PRICING:
            pricing = await extract_pricing(deps.ai, content)
            if pricing is not None:
                cs.pricing = pricing
                logger.info("    %d plans extracted", len(pricing.plans))
        ps.hash = new_hash
        ps.text_snapshot = new_text
        ps.last_checked = now
        ps.last_changed = None

    elif new_hash == ps.hash:
        logger.info("    Unchanged")
        ps.last_checked = now
        _record_seo_change(result, competitor, page, old_seo, new_seo, now)

    else:
        logger.info("    CHANGED")
        diff = compute_text_diff(ps.text_snapshot or "", new_text)
        pricing_changes = None
        if page.type == PageType.PRICING:
            new_pricing = await extract_pricing(deps.ai, content)
            if new_pricing is not None:
                pricing_changes = compare_pricing(cs.pricing, new_pricing)
                cs.pricing = new_pricing

        analysis = await analyze_page_change(
            deps.ai, competitor.name, page.label, page.type, diff
        ) or default_analysis(page.type)

        result.alerts.append(
            format_page_change_alert(competitor.name, page, analysis, diff, pricing_changes)
        )
        result.events.append(
            HistoryEvent(
                date=now,
                competitor=competitor.name,
                page_id=page.id,
                page_label=page.label,
                type=EventType.PAGE_CHANGE,
                priority=analysis.priority,
                summary=analysis.summary,
                analysis=analysis.analysis,
                recommendation=analysis.recommendation,
                url=page.url,
                diff=DiffExcerpt(before=diff.before_excerpt, after=diff.after_excerpt),
            )
        )
        _record_seo_change(result, competitor, page, old_seo, new_seo, now)

        ps.hash = new_hash
        ps.text_snapshot = new_text
        ps.last_checked = now
        ps.last_changed = now

    cs.seo[page.id] = new_seo
    cs.pages[page.id] = ps


# ══════════════════════════════════════════════════════════════════════
# BLOG RSS
# ══════════════════════════════════════════════════════════════════════

async def process_blog(
    deps: ScanDeps,
    result: ScanResult,
    competitor: Competitor,
    cs: CompetitorState,
    keywords: dict[str, list[str]],
) -> None:
    logger.info("  Blog RSS...")
    feed = await fetch_url(deps.http, competitor.blog_rss)
    if feed is None:
        return

    posts = parse_rss_feed(feed)
    seen = set(cs.blog.post_ids)

    if not seen:
        logger.info("    Indexed %d posts (first run)", len(posts))
    else:
        new_posts = [p for p in posts if p.id not in seen]
        if not new_posts:
            logger.info("    No new posts")
        regular = []
        for post in new_posts:
            category = detect_announcement(post.title, keywords)
            if category is None:
                regular.append(post)
                continue
            logger.info('    Announcement: %s — "%s"', category, post.title)
            cl = await classify_announcement(deps.ai, competitor.name, post.title, category)
            result.alerts.append(format_announcement_alert(competitor.name, post, cl))
            result.events.append(
                HistoryEvent(
                    date=iso(deps.clock()),
                    competitor=competitor.name,
                    type=EventType.ANNOUNCEMENT,
                    priority=cl.priority,
                    summary=cl.summary or post.title,
                    category=cl.category,
                    url=post.link,
                )
            )
        if regular:
            logger.info("    %d new post(s)", len(regular))
            result.alerts.append(format_blog_alert(competitor.name, regular))
            now = iso(deps.clock())
            result.events.extend(
                HistoryEvent(
                    date=now,
                    competitor=competitor.name,
                    type=EventType.BLOG_POST,
                    priority=Priority.LOW,
                    summary=p.title,
                    url=p.link,
                )
                for p in regular
            )

    cs.blog.post_ids = [p.id for p in posts]


# ══════════════════════════════════════════════════════════════════════
# LAUNCH FEED
# ══════════════════════════════════════════════════════════════════════

async def process_launch_topic(
    deps: ScanDeps,
    result: ScanResult,
    state: MonitorState,
    topic: LaunchTopic,
    token: str,
    min_votes: int,
) -> None:
    logger.info("  %s...", topic.name)
    seen = set((state.product_hunt.get(topic.slug) or LaunchFeedState()).post_ids)
    posts = await fetch_product_hunt_posts(deps.http, topic.slug, token)
    eligible = [p for p in posts if p.votes_count >= min_votes]

    if not seen:
        logger.info("    Indexed %d posts (first run)", len(eligible))
    else:
        new_posts = [p for p in eligible if p.id not in seen]
        if new_posts:
            logger.info("    %d new launch(es)", len(new_posts))
            result.alerts.append(format_launch_alert(topic.name, new_posts))
            now = iso(deps.clock())
            result.events.extend(
                HistoryEvent(
                    date=now,
                    type=EventType.PRODUCTHUNT,
                    priority=Priority.MEDIUM,
                    summary=f"{p.name}: {p.tagline}",
                    topic=topic.name,
                    url=p.url,
                    votes=p.votes_count,
                )
                for p in new_posts
            )
        else:
            logger.info("    No new launches")

    state.product_hunt[topic.slug] = LaunchFeedState(post_ids=[p.id for p in eligible])


# ══════════════════════════════════════════════════════════════════════
# SCAN
# ══════════════════════════════════════════════════════════════════════

async def _persist_history_and_dashboard(
    deps: ScanDeps,
    tenant: str | None,
    config: MonitorConfig,
    state: MonitorState,
    events: list[HistoryEvent],
) -> None:
    now = deps.clock()
    history: list[HistoryEvent] = []
    try:
        history_days = await deps.store.resolve_history_days(tenant)
        history = prune_history(await deps.store.load_history(tenant) + events, history_days, now)
        await deps.store.save_history(tenant, history, history_days, now)
    except Exception:
        logger.exception("History save failed for tenant %s", tenant)

    try:
        projection = build_dashboard_projection(state, history, config.competitors, now)
        await deps.store.save_dashboard(tenant, projection)
    except Exception:
        logger.exception("Dashboard projection failed for tenant %s", tenant)


async def run_monitor(
    deps: ScanDeps,
    config_override: MonitorConfig | None = None,
    tenant: str | None = None,
) -> list[Alert]:
    """
    Run one scan and return the alerts it produced.

    Errors from fetches, the LLM, the webhook and the store never propagate; they
    are logged and the next scan acts as the retry.
    """
    try:
        config = config_override or await deps.store.load_config(tenant)
    except Exception:
        logger.exception("Config load failed for tenant %s, scan skipped", tenant)
        return []
    if not config.competitors:
        logger.info("No competitors configured for tenant %s.", tenant or "-")
        return []

    started = deps.clock()
    logger.info("🐕 ScopeHound scan started at %s (tenant=%s)", iso(started), tenant or "-")
    logger.info("Monitoring %d competitors", len(config.competitors))

    state = await deps.store.load_state(tenant, config, started)
    monitor_settings = config.settings
    result = ScanResult()

    for competitor in config.competitors:
        logger.info("── %s ──", competitor.name)
        cs = state.competitors.setdefault(competitor.name, CompetitorState())
        for page in competitor.pages:
            await process_page(deps, result, competitor, cs, page)
        if competitor.blog_rss:
            await process_blog(deps, result, competitor, cs, monitor_settings.announcement_keywords)

    topics = monitor_settings.product_hunt_topics
    if topics and monitor_settings.product_hunt_token:
        logger.info("── Product Hunt ──")
        for topic in topics:
            await process_launch_topic(
                deps,
                result,
                state,
                topic,
                monitor_settings.product_hunt_token,
                monitor_settings.ph_min_votes,
            )

    try:
        await deps.store.save_state(tenant, state)
    except Exception:
        # state unchanged: the next scan re-detects these changes
        logger.exception("State save failed for tenant %s, alerts withheld", tenant)
        return []
    await _persist_history_and_dashboard(deps, tenant, config, state, result.events)
    logger.info("State saved")

    await dispatch_alerts(deps.http, monitor_settings.slack_webhook_url, result.alerts, deps.clock())
    logger.info("Done! %d alert(s)", len(result.alerts))
    return result.alerts


# ══════════════════════════════════════════════════════════════════════
# TRIGGERS
# ══════════════════════════════════════════════════════════════════════

_inflight: dict[str | None, asyncio.Task[list[Alert]]] = {}


async def trigger_scan(deps: ScanDeps, tenant: str | None = None) -> dict[str, int]:
    """
    Manual scan. A trigger arriving while the tenant's scan is running
    joins that scan instead of starting another.
    """
    task = _inflight.get(tenant)
    if task is None or task.done():
        task = asyncio.create_task(run_monitor(deps, None, tenant))
        _inflight[tenant] = task

        def _release(done: asyncio.Task[list[Alert]]) -> None:
            if _inflight.get(tenant) is done:
                del _inflight[tenant]

        task.add_done_callback(_release)
    # one joiner going away must not cancel the scan for the others
    alerts = await asyncio.shield(task)
    return {"alertsSent": len(alerts)}


async def scheduled_tick(deps: ScanDeps, hosted: bool) -> int:
    """
    Cron entry point: one scan per active tenant, sequentially, or a
    single scan in single-tenant mode. Returns the number of scans run.
    """
    if not hosted:
        await run_monitor(deps)
        return 1

    try:
        tenants = await deps.store.active_tenants()
    except Exception:
        logger.exception("Could not list active tenants, tick skipped")
        return 0

    scans = 0
    for tenant in tenants:
        try:
            record = await deps.store.load_tenant(tenant)
            if record is None or record.get("subscriptionStatus") != "active":
                continue
            logger.info("Running scan for tenant %s (%s)", tenant, record.get("tier"))
            await run_monitor(deps, None, tenant)
            scans += 1
        except Exception:
            logger.exception("Scan failed for tenant %s", tenant)
    return scans
