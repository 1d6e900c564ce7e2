import asyncio

import httpx
from conftest import T0, WEBHOOK, FakeWeb

from workers.alerts.dispatcher import LOW_SEPARATOR, build_digest, dispatch_alerts
from workers.alerts.formatter import (
    format_announcement_alert,
    format_digest_header,
    format_launch_alert,
    format_page_change_alert,
    format_seo_alert,
)
from workers.monitor.models import (
    Alert,
    AnnouncementClassification,
    LaunchPost,
    Page,
    PageAnalysis,
    PageType,
    Priority,
    RssItem,
    SeoChange,
)


# ----------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------

def test_page_change_alert_lists_pricing_details():
    page = Page(id="pricing", url="https://acme.test/pricing", label="Pricing", type=PageType.PRICING)
    analysis = PageAnalysis(summary="Pro went up", priority=Priority.HIGH, recommendation="Compare plans.")
    alert = format_page_change_alert("Acme", page, analysis, None, ["Pro: $19 → $29"])

    assert alert.priority == Priority.HIGH
    assert alert.text.startswith("🔴 *HIGH* | *Acme* updated their Pricing")
    assert "  • Pro: $19 → $29" in alert.text
    assert alert.text.endswith("<https://acme.test/pricing|View page>")


def test_seo_alert_describes_each_field():
    changes = [
        SeoChange(field="title", old="Home", new="Home v2"),
        SeoChange(field="og_title", old=None, new="OG"),
        SeoChange(field="h1", old="Hi", new=""),
    ]
    alert = format_seo_alert("Acme", "Home", "https://acme.test/", changes)
    assert alert.priority == Priority.LOW
    assert '*Title:* "Home" → "Home v2"' in alert.text
    assert '*OG Title:* Added "OG"' in alert.text
    assert '*H1:* Removed "Hi"' in alert.text


def test_announcement_alert_uses_category_emoji():
    post = RssItem(id="1", title="Acme raises Series B", link="https://acme.test/b")
    cl = AnnouncementClassification(category="funding", priority=Priority.HIGH, summary="Acme raises Series B")
    alert = format_announcement_alert("Acme", post, cl)
    assert "💰 *Category:* funding" in alert.text
    assert "_Acme raises Series B_" not in alert.text


def test_launch_alert_shows_votes_when_positive():
    posts = [
        LaunchPost(id="1", name="Widget", tagline="Widgets for all", url="https://ph.test/w", votes_count=42),
        LaunchPost(id="2", name="Gadget", tagline="New", url="https://ph.test/g"),
    ]
    text = format_launch_alert("SaaS", posts).text
    assert "<https://ph.test/w|Widget> (42 votes)" in text
    assert "<https://ph.test/g|Gadget>\n" in text


def test_digest_header_counts_by_priority():
    alerts = [Alert("a", Priority.HIGH), Alert("b", Priority.LOW), Alert("c", Priority.LOW)]
    header = format_digest_header(alerts, T0)
    assert header == "🐕 *ScopeHound Daily Report* — Mar 2, 2026\n\n3 change(s) detected: 1 high, 2 low"


# ----------------------------------------------------------------------
# Dispatch order
# ----------------------------------------------------------------------

def test_build_digest_orders_high_medium_then_low_batch():
    alerts = [
        Alert("low-1", Priority.LOW),
        Alert("med-1", Priority.MEDIUM),
        Alert("high-1", Priority.HIGH),
        Alert("low-2", Priority.LOW),
        Alert("high-2", Priority.HIGH),
    ]
    messages = build_digest(alerts, T0)
    assert messages[0].startswith("🐕 *ScopeHound Daily Report*")
    assert messages[1:] == ["high-1", "high-2", "med-1", "low-1" + LOW_SEPARATOR + "low-2"]


def test_build_digest_empty():
    assert build_digest([], T0) == []


def test_dispatch_alerts_posts_sequentially_and_counts_failures():
    web = FakeWeb()
    alerts = [Alert("high-1", Priority.HIGH), Alert("low-1", Priority.LOW)]

    async def scenario(fail):
        web.fail_slack = fail
        async with httpx.AsyncClient(transport=httpx.MockTransport(web.handler)) as http:
            return await dispatch_alerts(http, WEBHOOK, alerts, T0)

    assert asyncio.run(scenario(False)) == 3
    assert web.slack[1:] == ["high-1", "low-1"]
    assert asyncio.run(scenario(True)) == 0


def test_dispatch_alerts_without_webhook_only_logs():
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(FakeWeb().handler)) as http:
            return await dispatch_alerts(http, None, [Alert("x", Priority.LOW)], T0)

    assert asyncio.run(scenario()) == 0
