import json

import pytest
from conftest import WEBHOOK
from fastapi.testclient import TestClient

from api.deps import get_scan_deps
from api.main import app

SITE = "https://acme.test"

HOMEPAGE = f"""<html><head>
<link rel="alternate" type="application/rss+xml" href="/blog/rss">
</head><body>
<a href="/pricing">Pricing</a>
<a href="{SITE}/blog/">Blog</a>
<a href="/careers?ref=nav">Jobs</a>
<a href="https://other.test/pricing">Partner</a>
<a href="mailto:hi@acme.test">Mail</a>
</body></html>"""


def competitor(name, pages=1):
    return {
        "name": name,
        "website": f"https://{name.lower()}.test",
        "pages": [{"id": f"p{i}", "url": f"https://{name.lower()}.test/{i}", "label": f"P{i}"} for i in range(pages)],
    }


@pytest.fixture
def client(make_deps):
    deps = make_deps()
    app.dependency_overrides[get_scan_deps] = lambda: deps
    yield TestClient(app)
    app.dependency_overrides.clear()


# ----------------------------------------------------------------------
# Config
# ----------------------------------------------------------------------

def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_save_and_read_competitors(client, kv):
    res = client.post("/api/config/competitors", json={"competitors": [competitor("Acme", 2)]})
    assert res.json() == {"success": True, "count": 1}
    assert kv.data["config:setup_complete"] == "true"

    config = client.get("/api/config").json()
    assert config["competitors"][0]["name"] == "Acme"
    assert config["competitors"][0]["pages"][1]["type"] == "general"
    assert "funding" in config["settings"]["announcementKeywords"]


@pytest.mark.parametrize(
    "payload, detail",
    [
        ({"competitors": "nope"}, "competitors must be an array"),
        ({"competitors": [{"name": "Acme", "pages": [{"id": "a", "url": "u"}]}]}, "Competitor missing name or website"),
        ({"competitors": [competitor("Acme", 0)]}, "Acme: needs at least one page"),
        ({"competitors": [competitor("Acme", 5)]}, "Acme: maximum 4 pages per competitor"),
        ({"competitors": [competitor(f"C{i}") for i in range(26)]}, "Maximum 25 competitors"),
    ],
)
def test_competitor_validation(client, kv, payload, detail):
    res = client.post("/api/config/competitors", json=payload)
    assert res.status_code == 400
    assert res.json()["detail"] == detail
    assert "config:competitors" not in kv.data


def test_tenant_tier_limits(client, kv):
    kv.data["user:t1"] = json.dumps({"tier": "recon", "subscriptionStatus": "active"})
    headers = {"X-Tenant-Id": "t1"}

    res = client.post("/api/config/competitors", json={"competitors": [competitor(f"C{i}") for i in range(4)]}, headers=headers)
    assert res.json()["detail"] == "Your Recon plan allows 3 competitors."

    res = client.post("/api/config/competitors", json={"competitors": [competitor("A", 4), competitor("B", 3)]}, headers=headers)
    assert res.json()["detail"] == "Your Recon plan allows 6 pages."

    res = client.post("/api/config/competitors", json={"competitors": [competitor("A", 3)]}, headers=headers)
    assert res.status_code == 200
    assert "user_config:t1:competitors" in kv.data
    assert "config:setup_complete" not in kv.data


def test_save_settings_normalizes(client, kv):
    res = client.post(
        "/api/config/settings",
        json={"slackWebhookUrl": "", "productHuntTopics": [{"slug": "saas", "name": "SaaS"}], "announcementKeywords": {}},
    )
    assert res.json() == {"success": True}
    stored = json.loads(kv.data["config:settings"])
    assert stored["slackWebhookUrl"] is None
    assert stored["phMinVotes"] == 0
    assert stored["productHuntTopics"] == [{"slug": "saas", "name": "SaaS"}]
    assert "funding" in stored["announcementKeywords"]


def test_test_slack(client, web):
    assert client.post("/api/config/test-slack", json={}).status_code == 400
    res = client.post("/api/config/test-slack", json={"webhookUrl": WEBHOOK})
    assert res.json() == {"success": True}
    assert web.slack == ["ScopeHound is connected. Setup wizard test successful."]


def test_trigger_scan(client, kv, web):
    client.post("/api/config/competitors", json={"competitors": [competitor("Acme")]})
    web.serve("https://acme.test/0", "<html><title>A</title></html>")

    assert client.post("/api/config/trigger-scan").json() == {"success": True, "alertsSent": 0}
    assert "monitor_state" in kv.data


# ----------------------------------------------------------------------
# Discovery
# ----------------------------------------------------------------------

def test_detect_rss_probes_known_paths(client, web):
    web.serve(f"{SITE}/rss.xml", "<rss><channel></channel></rss>")
    assert client.post("/api/config/detect-rss", json={"url": SITE + "/"}).json() == {
        "found": True,
        "feedUrl": f"{SITE}/rss.xml",
    }


def test_detect_rss_falls_back_to_link_tag(client, web):
    web.serve(SITE, HOMEPAGE)
    web.serve(f"{SITE}/", HOMEPAGE)
    res = client.post("/api/config/detect-rss", json={"url": SITE}).json()
    assert res == {"found": True, "feedUrl": f"{SITE}/blog/rss"}


def test_detect_rss_not_found(client):
    assert client.post("/api/config/detect-rss", json={"url": SITE}).json() == {"found": False, "feedUrl": None}
    assert client.post("/api/config/detect-rss", json={}).status_code == 400


def test_discover_pages(client, web):
    web.serve(SITE, HOMEPAGE)
    web.serve(f"{SITE}/", HOMEPAGE)
    pages = client.post("/api/config/discover-pages", json={"url": SITE}).json()["pages"]

    assert pages[0] == {"url": SITE, "type": "general", "label": "Homepage"}
    by_type = {p["type"]: p for p in pages[1:]}
    assert by_type["pricing"]["url"] == f"{SITE}/pricing"
    assert by_type["blog"] == {"url": f"{SITE}/blog/", "type": "blog", "label": "Blog", "rss": f"{SITE}/blog/rss"}
    assert by_type["careers"]["url"] == f"{SITE}/careers"
    assert all("other.test" not in p["url"] for p in pages)


# ----------------------------------------------------------------------
# State reads + resets
# ----------------------------------------------------------------------

def test_state_reads_default_to_empty(client):
    assert client.get("/api/state").json() == {}
    assert client.get("/api/history").json() == []
    assert client.get("/api/dashboard").json() == {"competitors": [], "recentChanges": []}


def test_reset_is_tenant_scoped(client, kv):
    kv.data["user_state:t1:monitor"] = json.dumps({"_version": 2})
    kv.data["user_state:t1:dashboard"] = "{}"
    kv.data["monitor_state"] = json.dumps({"_version": 2})

    assert client.post("/api/reset", headers={"X-Tenant-Id": "t1"}).json()["success"] is True
    assert "user_state:t1:monitor" not in kv.data
    assert "user_state:t1:dashboard" not in kv.data
    assert "monitor_state" in kv.data
    assert client.get("/api/state").json() == {"_version": 2}


def test_reset_pricing(client, kv):
    client.post(
        "/api/config/competitors",
        json={"competitors": [{"name": "Acme", "website": SITE, "pages": [{"id": "pricing", "url": f"{SITE}/pricing", "type": "pricing"}]}]},
    )
    kv.data["monitor_state"] = json.dumps(
        {"_version": 2, "competitors": {"Acme": {"pages": {"pricing": {"hash": "h"}}, "pricing": {"plans": []}}}}
    )
    assert client.post("/api/reset-pricing").json()["success"] is True
    acme = json.loads(kv.data["monitor_state"])["competitors"]["Acme"]
    assert acme["pages"]["pricing"]["hash"] is None
    assert acme["pricing"] is None
