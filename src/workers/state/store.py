"""
State store — tenant-namespaced JSON documents over a key/value backend.

Key layout (single-tenant / tenant):
  monitor_state      / user_state:<tenant>:monitor
  change_history     / user_state:<tenant>:history
  dashboard_cache    / user_state:<tenant>:dashboard
  config:<name>      / user_config:<tenant>:<name>   (competitors, settings)
  user:<tenant>                                      tenant record (tier, status)
  active_subscribers                                 tenants scanned by cron
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from core.config import settings
from core.kv import KeyValueStore
from core.tiers import TIERS
from workers.monitor.models import (
    STATE_VERSION,
    Competitor,
    DashboardProjection,
    HistoryEvent,
    MonitorConfig,
    MonitorSettings,
    MonitorState,
    PageType,
)
from workers.state.migrator import migrate_state

logger = logging.getLogger(__name__)

MAX_HISTORY_EVENTS = 500
ACTIVE_SUBSCRIBERS_KEY = "active_subscribers"


def iso(dt: datetime) -> str:
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_date(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def prune_history(
    history: Sequence[HistoryEvent],
    history_days: int,
    now: datetime,
) -> list[HistoryEvent]:
    """Drop events older than ``history_days`` and keep the newest 500."""
    cutoff = now - timedelta(days=history_days)
    kept = []
    for event in history:
        date = _parse_date(event.date)
        if date is not None and date.tzinfo is None:
            date = date.replace(tzinfo=now.tzinfo)
        if date is not None and date > cutoff:
            kept.append(event)
    return kept[-MAX_HISTORY_EVENTS:]


class StateStore:
    """Typed access to every document the engine reads or writes."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    # ── Keys ──────────────────────────────────────────────────────────

    @staticmethod
    def state_key(tenant: str | None) -> str:
        return f"user_state:{tenant}:monitor" if tenant else "monitor_state"

    @staticmethod
    def history_key(tenant: str | None) -> str:
        return f"user_state:{tenant}:history" if tenant else "change_history"

    @staticmethod
    def dashboard_key(tenant: str | None) -> str:
        return f"user_state:{tenant}:dashboard" if tenant else "dashboard_cache"

    @staticmethod
    def config_key(tenant: str | None, name: str) -> str:
        prefix = f"user_config:{tenant}:" if tenant else "config:"
        return prefix + name

    # ── Raw JSON helpers ──────────────────────────────────────────────

    async def get_json(self, key: str) -> Any:
        """Decoded document, or None when missing or not valid JSON."""
        raw = await self.kv.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupted JSON under %s, ignoring", key)
            return None

    async def put_json(self, key: str, value: Any) -> None:
        await self.kv.put(key, json.dumps(value, ensure_ascii=False))

    # ── Config ────────────────────────────────────────────────────────

    async def load_config(self, tenant: str | None = None) -> MonitorConfig:
        """Stored competitors + settings, with environment fallbacks."""
        competitors_raw = await self.get_json(self.config_key(tenant, "competitors")) or []
        settings_raw = await self.get_json(self.config_key(tenant, "settings")) or {}

        competitors: list[Competitor] = []
        for item in competitors_raw if isinstance(competitors_raw, list) else []:
            try:
                competitors.append(Competitor.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping invalid competitor config: %s", exc.errors()[0]["msg"])

        try:
            monitor_settings = MonitorSettings.model_validate(
                {k: v for k, v in settings_raw.items() if v is not None}
                if isinstance(settings_raw, dict) else {}
            )
        except ValidationError:
            logger.warning("Invalid settings for tenant %s, using defaults", tenant)
            monitor_settings = MonitorSettings()

        if not monitor_settings.slack_webhook_url:
            monitor_settings.slack_webhook_url = settings.slack_webhook_url or None
        if not monitor_settings.product_hunt_token:
            monitor_settings.product_hunt_token = settings.producthunt_token or None

        return MonitorConfig(competitors=competitors, settings=monitor_settings)

    async def save_competitors(self, tenant: str | None, competitors: Sequence[Competitor]) -> None:
        await self.put_json(
            self.config_key(tenant, "competitors"),
            [c.to_json_dict(exclude_none=True) for c in competitors],
        )
        if not tenant:
            await self.kv.put("config:setup_complete", "true")

    async def save_settings(self, tenant: str | None, monitor_settings: MonitorSettings) -> None:
        await self.put_json(self.config_key(tenant, "settings"), monitor_settings.to_json_dict())

    # ── Monitor state ─────────────────────────────────────────────────

    async def load_state(
        self,
        tenant: str | None,
        config: MonitorConfig,
        now: datetime,
    ) -> MonitorState:
        """
        Current state, migrating legacy documents (and persisting the
        upgrade). Unreadable documents or a failing backend start a fresh
        state.
        """
        key = self.state_key(tenant)
        try:
            raw = await self.get_json(key)
        except Exception:
            logger.exception("State load error for %s, starting fresh", key)
            return MonitorState()
        if not isinstance(raw, dict):
            return MonitorState()

        version = raw.get("_version")
        if not isinstance(version, int) or version < STATE_VERSION:
            state = migrate_state(
                raw,
                config.competitors,
                config.settings.product_hunt_topics,
                iso(now),
            )
            try:
                await self.save_state(tenant, state)
            except Exception:
                logger.exception("Migrated state for %s not persisted", key)
            return state

        try:
            return MonitorState.model_validate(raw)
        except ValidationError:
            logger.warning("State load error for %s, starting fresh", key)
            return MonitorState()

    async def save_state(self, tenant: str | None, state: MonitorState) -> None:
        await self.put_json(self.state_key(tenant), state.to_json_dict())

    # ── History ───────────────────────────────────────────────────────

    async def load_history(self, tenant: str | None) -> list[HistoryEvent]:
        raw = await self.get_json(self.history_key(tenant))
        if not isinstance(raw, list):
            return []
        events = []
        for item in raw:
            try:
                events.append(HistoryEvent.model_validate(item))
            except ValidationError:
                logger.debug("Dropping unreadable history event")
        return events

    async def save_history(
        self,
        tenant: str | None,
        history: Sequence[HistoryEvent],
        history_days: int,
        now: datetime,
    ) -> list[HistoryEvent]:
        pruned = prune_history(history, history_days, now)
        await self.put_json(self.history_key(tenant), [e.to_json_dict() for e in pruned])
        return pruned

    # ── Dashboard ─────────────────────────────────────────────────────

    async def save_dashboard(self, tenant: str | None, projection: DashboardProjection) -> None:
        await self.put_json(self.dashboard_key(tenant), projection.to_json_dict())

    # ── Tenants ───────────────────────────────────────────────────────

    async def load_tenant(self, tenant: str) -> dict[str, Any] | None:
        record = await self.get_json(f"user:{tenant}")
        return record if isinstance(record, dict) else None

    async def active_tenants(self) -> list[str]:
        raw = await self.get_json(ACTIVE_SUBSCRIBERS_KEY)
        return [str(t) for t in raw] if isinstance(raw, list) else []

    async def resolve_history_days(self, tenant: str | None) -> int:
        """Retention for the tenant's tier; 90 days when unknown."""
        if not tenant:
            return settings.default_history_days
        record = await self.load_tenant(tenant)
        tier = TIERS.get(str(record.get("tier"))) if record else None
        if tier is None:
            return settings.default_history_days
        return tier.retention_days

    # ── Resets ────────────────────────────────────────────────────────

    async def reset(self, tenant: str | None) -> None:
        """Forget all state; the next scan re-indexes from scratch."""
        await self.kv.delete(self.state_key(tenant))
        await self.kv.delete(self.dashboard_key(tenant))

    async def reset_pricing(self, tenant: str | None, config: MonitorConfig) -> None:
        """Clear pricing and put pricing pages back into first-run state."""
        raw = await self.get_json(self.state_key(tenant))
        if not isinstance(raw, dict) or raw.get("_version") != STATE_VERSION:
            return
        try:
            state = MonitorState.model_validate(raw)
        except ValidationError:
            return
        for comp in config.competitors:
            cs = state.competitors.get(comp.name)
            if cs is None:
                continue
            cs.pricing = None
            for page in comp.pages:
                if page.type == PageType.PRICING and page.id in cs.pages:
                    cs.pages[page.id].hash = None
                    cs.pages[page.id].text_snapshot = None
        await self.save_state(tenant, state)
