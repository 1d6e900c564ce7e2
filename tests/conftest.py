"""Shared fakes: in-memory store, scripted LLM, fake web, fixed clock."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from core.ai.base import BaseAIProvider
from core.kv import MemoryKeyValueStore
from workers.monitor.orchestrator import ScanDeps
from workers.state.store import StateStore

WEBHOOK = "https://hooks.slack.test/services/T/B/X"
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class StubAI(BaseAIProvider):
    """Replies with ``responder(prompt)``; every prompt is recorded."""

    def __init__(self, responder: Callable[[str], str] | None = None) -> None:
        super().__init__(api_key="test", model_name="stub")
        self.responder = responder or (lambda prompt: "")
        self.prompts: list[str] = []

    async def generate_text(self, prompt, max_tokens=None) -> str:
        self.prompts.append(prompt)
        return self.responder(prompt)


class FakeWeb:
    """Routes GETs to canned pages and records every webhook POST."""

    def __init__(self) -> None:
        self.pages: dict[str, tuple[int, str]] = {}
        self.slack: list[str] = []
        self.graphql: dict | None = None
        self.fail_slack = False
        self.requests: list[str] = []

    def serve(self, url: str, body: str, status: int = 200) -> None:
        self.pages[url] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if request.method == "POST" and url == WEBHOOK:
            if self.fail_slack:
                return httpx.Response(500)
            self.slack.append(json.loads(request.content)["text"])
            return httpx.Response(200, text="ok")
        if request.method == "POST" and "producthunt" in url:
            return httpx.Response(200, json=self.graphql or {"data": {"posts": {"edges": []}}})
        status, body = self.pages.get(url, (404, "not found"))
        return httpx.Response(status, text=body)


class Clock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def web() -> FakeWeb:
    return FakeWeb()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def make_deps(web, kv, clock):
    def _make(ai: BaseAIProvider | None = None) -> ScanDeps:
        http = httpx.AsyncClient(transport=httpx.MockTransport(web.handler))
        return ScanDeps(store=StateStore(kv), http=http, ai=ai, clock=clock)

    return _make


def seed_config(kv: MemoryKeyValueStore, competitors: list[dict], **settings) -> None:
    """Write single-tenant config documents straight into the store."""
    kv.data["config:competitors"] = json.dumps(competitors)
    kv.data["config:settings"] = json.dumps({"slackWebhookUrl": WEBHOOK, **settings})
