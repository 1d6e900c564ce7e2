"""End-to-end scans against a fake web, an in-memory store and a scripted LLM."""

import asyncio
import json

import pytest

from conftest import StubAI, seed_config

from core.kv import MemoryKeyValueStore
from workers.monitor.models import Priority
from workers.monitor.orchestrator import run_monitor, scheduled_tick, trigger_scan

HOME = "https://ex.test/"
PRICING = "https://ex.test/pricing"
FEED = "https://ex.test/feed.xml"

EX = {
    "name": "Ex",
    "website": "https://ex.test",
    "pages": [{"id": "home", "url": HOME, "label": "Homepage", "type": "general"}],
}
HOME_HTML = "<html><head><title>Home</title></head><body><h1>Hi</h1></body></html>"


def scan(deps, tenant=None):
    return asyncio.run(run_monitor(deps, None, tenant))


def state_of(kv, key="monitor_state"):
    return json.loads(kv.data[key])


# ----------------------------------------------------------------------
# Page state machine
# ----------------------------------------------------------------------

def test_first_run_indexes_silently(web, kv, make_deps):
    seed_config(kv, [EX])
    web.serve(HOME, HOME_HTML)

    alerts = scan(make_deps())

    assert alerts == []
    assert web.slack == []
    ex = state_of(kv)["competitors"]["Ex"]
    assert ex["pages"]["home"]["hash"]
    assert ex["pages"]["home"]["lastChanged"] is None
    assert ex["seo"]["home"]["title"] == "Home"
    assert ex["seo"]["home"]["h1s"] == ["Hi"]


def test_unchanged_second_scan(web, kv, clock, make_deps):
    seed_config(kv, [EX])
    web.serve(HOME, HOME_HTML)
    deps = make_deps()
    scan(deps)
    first = state_of(kv)["competitors"]["Ex"]

    clock.advance(days=1)
    alerts = scan(deps)

    second = state_of(kv)["competitors"]["Ex"]
    assert alerts == []
    assert second["pages"]["home"]["hash"] == first["pages"]["home"]["hash"]
    assert second["pages"]["home"]["textSnapshot"] == first["pages"]["home"]["textSnapshot"]
    assert second["seo"] == first["seo"]
    assert second["pages"]["home"]["lastChanged"] is None
    assert second["pages"]["home"]["lastChecked"] > first["pages"]["home"]["lastChecked"]


def test_seo_only_change(web, kv, clock, make_deps):
    seed_config(kv, [EX])
    page = '<html><head><script>var t = "<title>{}</title>";</script></head><body><h1>Hi</h1></body></html>'
    web.serve(HOME, page.format("Home"))
    deps = make_deps()
    scan(deps)

    clock.advance(days=1)
    web.serve(HOME, page.format("Home v2"))
    alerts = scan(deps)

    assert len(alerts) == 1
    assert alerts[0].priority == Priority.LOW
    assert '*Title:* "Home" → "Home v2"' in alerts[0].text
    history = state_of(kv, "change_history")
    assert [e["type"] for e in history] == ["seo_change"]
    assert state_of(kv)["competitors"]["Ex"]["pages"]["home"]["lastChanged"] is None


def test_fetch_failure_leaves_page_untouched(web, kv, clock, make_deps):
    seed_config(kv, [EX])
    web.serve(HOME, HOME_HTML)
    deps = make_deps()
    scan(deps)
    before = state_of(kv)["competitors"]["Ex"]["pages"]["home"]

    clock.advance(days=1)
    web.serve(HOME, "oops", status=503)
    assert scan(deps) == []
    assert state_of(kv)["competitors"]["Ex"]["pages"]["home"] == before


def test_no_competitors_writes_nothing(kv, make_deps):
    assert scan(make_deps()) == []
    assert kv.data == {}


# ----------------------------------------------------------------------
# Pricing with the LLM
# ----------------------------------------------------------------------

PRICING_HTML = (
    "<html><body><h1>Pricing</h1>"
    "<p>The Pro plan costs {price} per month for small teams.</p>"
    "<p>Every plan includes unlimited projects and seats.</p>"
    "<p>Enterprise pricing is available on request for large companies.</p>"
    "<p>Annual billing saves you two months every year.</p>"
    "</body></html>"
)


def pricing_llm(prompt: str) -> str:
    if prompt.startswith("Extract all pricing"):
        price = "$29" if "$29" in prompt else "$19"
        return json.dumps({"plans": [{"name": "Pro", "price": price, "features": []}], "notes": ""})
    if "competitive intelligence analyst" in prompt:
        return (
            'Here is my answer: {"summary": "Pro price increased", "analysis": "Higher ARPU.",'
            ' "priority": "high", "recommendation": "Review positioning."}'
        )
    return ""


def test_pricing_change_with_llm(web, kv, clock, make_deps):
    comp = {
        "name": "Ex",
        "website": "https://ex.test",
        "pages": [{"id": "pricing", "url": PRICING, "label": "Pricing", "type": "pricing"}],
    }
    seed_config(kv, [comp])
    ai = StubAI(pricing_llm)
    deps = make_deps(ai)
    web.serve(PRICING, PRICING_HTML.format(price="$19"))
    assert scan(deps) == []
    assert state_of(kv)["competitors"]["Ex"]["pricing"]["plans"][0]["price"] == "$19"

    clock.advance(days=1)
    web.serve(PRICING, PRICING_HTML.format(price="$29"))
    alerts = scan(deps)

    assert len(alerts) == 1
    assert alerts[0].priority == Priority.HIGH
    assert "Pro: $19 → $29" in alerts[0].text
    assert "Pro price increased" in alerts[0].text

    ex = state_of(kv)["competitors"]["Ex"]
    assert ex["pricing"]["plans"][0]["price"] == "$29"
    assert ex["pages"]["pricing"]["lastChanged"] is not None
    assert web.slack[1] == alerts[0].text

    dashboard = state_of(kv, "dashboard_cache")
    assert dashboard["recentChanges"][0]["type"] == "page_change"
    assert dashboard["recentChanges"][0]["diff"]["after"].startswith("Pricing The Pro plan costs $29")


def test_page_change_without_llm_uses_defaults(web, kv, clock, make_deps):
    seed_config(kv, [EX])
    deps = make_deps()
    web.serve(HOME, PRICING_HTML.format(price="$19"))
    scan(deps)

    clock.advance(days=1)
    web.serve(HOME, PRICING_HTML.format(price="$29"))
    alerts = scan(deps)

    assert len(alerts) == 1
    assert alerts[0].priority == Priority.MEDIUM
    assert "Page content changed" in alerts[0].text


# ----------------------------------------------------------------------
# Blog feed
# ----------------------------------------------------------------------

def rss(*items):
    body = "".join(f"<item><title>{t}</title><link>https://ex.test/{g}</link><guid>{g}</guid></item>" for g, t in items)
    return f"<rss><channel>{body}</channel></rss>"


def test_blog_announcement_and_regular_posts(web, kv, clock, make_deps):
    seed_config(kv, [{**EX, "blogRss": FEED}])
    web.serve(HOME, HOME_HTML)
    web.serve(FEED, rss(("old", "Welcome to our blog")))
    deps = make_deps()
    assert scan(deps) == []

    clock.advance(days=1)
    web.serve(FEED, rss(("b", "Acme raises Series B"), ("t", "5 tips for X"), ("old", "Welcome to our blog")))
    alerts = scan(deps)

    assert [a.priority for a in alerts] == [Priority.MEDIUM, Priority.LOW]
    assert "💰 *Category:* funding" in alerts[0].text
    assert "5 tips for X" in alerts[1].text

    assert web.slack[0].startswith("🐕 *ScopeHound Daily Report*")
    assert "Series B" in web.slack[1]
    assert "5 tips for X" in web.slack[2]
    assert len(web.slack) == 3

    history = state_of(kv, "change_history")
    assert [(e["type"], e.get("category")) for e in history] == [
        ("announcement", "funding"),
        ("blog_post", None),
    ]
    assert state_of(kv)["competitors"]["Ex"]["blog"]["postIds"] == ["b", "t", "old"]


# ----------------------------------------------------------------------
# Launch feed
# ----------------------------------------------------------------------

def launches(*posts):
    return {
        "data": {
            "posts": {
                "edges": [
                    {"node": {"id": i, "name": n, "tagline": "Tag", "url": f"https://ph.test/{i}", "votesCount": v}}
                    for i, n, v in posts
                ]
            }
        }
    }


def test_launch_feed_alerts_on_new_posts_above_vote_floor(web, kv, clock, make_deps):
    seed_config(
        kv,
        [EX],
        productHuntToken="ph-token",
        productHuntTopics=[{"slug": "saas", "name": "SaaS"}],
        phMinVotes=10,
    )
    web.serve(HOME, HOME_HTML)
    web.graphql = launches(("1", "Old", 50))
    deps = make_deps()
    assert scan(deps) == []

    clock.advance(days=1)
    web.graphql = launches(("2", "Widget", 12), ("3", "Tiny", 3), ("1", "Old", 55))
    alerts = scan(deps)

    assert len(alerts) == 1
    assert alerts[0].priority == Priority.MEDIUM
    assert "Widget" in alerts[0].text and "Tiny" not in alerts[0].text
    assert state_of(kv)["productHunt"]["saas"]["postIds"] == ["2", "1"]


def test_launch_feed_skipped_without_token(web, kv, make_deps):
    seed_config(kv, [EX], productHuntTopics=[{"slug": "saas", "name": "SaaS"}])
    web.serve(HOME, HOME_HTML)
    scan(make_deps())
    assert not any("producthunt" in url for url in web.requests)
    assert state_of(kv)["productHunt"] == {}


# ----------------------------------------------------------------------
# Persistence ordering
# ----------------------------------------------------------------------

class FailingStateWrites(MemoryKeyValueStore):
    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail = False

    async def put(self, key, value):
        if self.fail and key == "monitor_state":
            raise ConnectionError("store down")
        await super().put(key, value)


def test_failed_state_write_withholds_alerts(web, clock, make_deps):
    kv = FailingStateWrites()
    seed_config(kv, [EX])
    web.serve(HOME, HOME_HTML)
    deps = make_deps()
    deps.store.kv = kv
    scan(deps)
    before = state_of(kv)

    clock.advance(days=1)
    web.serve(HOME, HOME_HTML.replace("Hi", "Hello there"))
    kv.fail = True
    assert scan(deps) == []
    assert web.slack == []
    assert state_of(kv) == before

    kv.fail = False
    retried = scan(deps)
    assert {a.priority for a in retried} == {Priority.MEDIUM, Priority.LOW}


class BrokenKeys(MemoryKeyValueStore):
    """Raises on reads of ``reads`` keys and writes of ``writes`` keys."""

    def __init__(self, reads=(), writes=()):
        super().__init__()
        self.reads = set(reads)
        self.writes = set(writes)

    async def get(self, key):
        if key in self.reads:
            raise ConnectionError("store down")
        return await super().get(key)

    async def put(self, key, value):
        if key in self.writes:
            raise ConnectionError("store down")
        await super().put(key, value)


def test_config_read_failure_skips_the_scan(web, make_deps):
    kv = BrokenKeys(reads={"config:competitors"})
    deps = make_deps()
    deps.store.kv = kv

    assert scan(deps) == []
    assert asyncio.run(trigger_scan(deps)) == {"alertsSent": 0}
    assert kv.data == {}
    assert web.requests == []


def test_state_read_failure_starts_fresh(web, make_deps):
    kv = BrokenKeys(reads={"monitor_state"})
    seed_config(kv, [EX])
    kv.data["monitor_state"] = json.dumps({"_version": 2, "competitors": {"Ex": {"pages": {"home": {"hash": "stale"}}}}})
    web.serve(HOME, HOME_HTML)
    deps = make_deps()
    deps.store.kv = kv

    assert scan(deps) == []
    assert web.slack == []
    home = state_of(kv)["competitors"]["Ex"]["pages"]["home"]
    assert home["hash"] != "stale"
    assert home["lastChanged"] is None


def test_dashboard_uses_pruned_history_when_history_write_fails(web, make_deps):
    kv = BrokenKeys(writes={"change_history"})
    seed_config(kv, [EX])
    kv.data["change_history"] = json.dumps(
        [{"date": "2020-01-01T00:00:00.000Z", "type": "blog_post", "priority": "low", "summary": "ancient"}]
    )
    web.serve(HOME, HOME_HTML)
    deps = make_deps()
    deps.store.kv = kv

    assert scan(deps) == []
    assert state_of(kv, "dashboard_cache")["recentChanges"] == []
    assert "monitor_state" in kv.data


def test_history_is_pruned_each_scan(web, kv, make_deps):
    seed_config(kv, [EX])
    kv.data["change_history"] = json.dumps(
        [{"date": "2020-01-01T00:00:00.000Z", "type": "blog_post", "priority": "low", "summary": "ancient"}]
    )
    web.serve(HOME, HOME_HTML)
    scan(make_deps())
    assert state_of(kv, "change_history") == []


# ----------------------------------------------------------------------
# Triggers
# ----------------------------------------------------------------------

def test_concurrent_triggers_join_one_scan(web, kv, make_deps):
    seed_config(kv, [EX])
    web.serve(HOME, HOME_HTML)
    deps = make_deps()

    async def both():
        return await asyncio.gather(trigger_scan(deps), trigger_scan(deps))

    assert asyncio.run(both()) == [{"alertsSent": 0}, {"alertsSent": 0}]
    assert web.requests.count(HOME) == 1


def test_cancelled_joiner_leaves_the_scan_running(web, kv, make_deps):
    seed_config(kv, [EX])
    web.serve(HOME, HOME_HTML)
    deps = make_deps()

    async def cancel_second():
        first = asyncio.create_task(trigger_scan(deps))
        second = asyncio.create_task(trigger_scan(deps))
        await asyncio.sleep(0)
        second.cancel()
        result = await first
        with pytest.raises(asyncio.CancelledError):
            await second
        return result

    assert asyncio.run(cancel_second()) == {"alertsSent": 0}
    assert "monitor_state" in kv.data
    assert web.requests.count(HOME) == 1


def test_scheduled_tick_scans_active_tenants_only(web, kv, make_deps):
    kv.data["active_subscribers"] = json.dumps(["t1", "t2"])
    kv.data["user:t1"] = json.dumps({"tier": "operator", "subscriptionStatus": "active"})
    kv.data["user:t2"] = json.dumps({"tier": "recon", "subscriptionStatus": "canceled"})
    for tenant in ("t1", "t2"):
        kv.data[f"user_config:{tenant}:competitors"] = json.dumps([EX])
    web.serve(HOME, HOME_HTML)

    assert asyncio.run(scheduled_tick(make_deps(), hosted=True)) == 1
    assert "user_state:t1:monitor" in kv.data
    assert "user_state:t2:monitor" not in kv.data
    assert "monitor_state" not in kv.data


def test_scheduled_tick_survives_store_outage(web, make_deps):
    deps = make_deps()
    deps.store.kv = BrokenKeys(reads={"active_subscribers"})
    assert asyncio.run(scheduled_tick(deps, hosted=True)) == 0

    deps.store.kv = BrokenKeys(reads={"config:competitors"})
    assert asyncio.run(scheduled_tick(deps, hosted=False)) == 1


def test_scheduled_tick_single_tenant(web, kv, make_deps):
    seed_config(kv, [EX])
    web.serve(HOME, HOME_HTML)
    assert asyncio.run(scheduled_tick(make_deps(), hosted=False)) == 1
    assert "monitor_state" in kv.data
