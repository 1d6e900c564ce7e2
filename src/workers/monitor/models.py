"""Data models for the monitoring pipeline (config, persisted state, alerts).

Persisted documents are pydantic models serialized with camelCase keys so
the JSON stored in the key/value table keeps its historical shape.
Transient values that never leave a scan are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from workers.monitor.announcements import DEFAULT_ANNOUNCEMENT_KEYWORDS

STATE_VERSION = 2


class PageType(StrEnum):
    """What kind of competitor page is being watched."""

    PRICING = "pricing"
    BLOG = "blog"
    CAREERS = "careers"
    GENERAL = "general"


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EventType(StrEnum):
    """History event taxonomy."""

    SEO_CHANGE = "seo_change"
    PAGE_CHANGE = "page_change"
    ANNOUNCEMENT = "announcement"
    BLOG_POST = "blog_post"
    PRODUCTHUNT = "producthunt"


class PageStatus(StrEnum):
    """Per-page state machine position."""

    NEVER_SEEN = "NEVER_SEEN"
    STABLE = "STABLE"


class Document(BaseModel):
    """Base for every JSON document stored or exchanged by the engine."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_json_dict(self, **kwargs: Any) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, **kwargs)


# ══════════════════════════════════════════════════════════════════════
# CONFIG
# ══════════════════════════════════════════════════════════════════════

class Page(Document):
    id: str
    url: str
    label: str = ""
    type: PageType = PageType.GENERAL

    @field_validator("type", mode="before")
    @classmethod
    def _unknown_type_is_general(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() in {t.value for t in PageType}:
            return value.lower()
        return PageType.GENERAL


class Competitor(Document):
    name: str
    website: str = ""
    pages: list[Page] = Field(default_factory=list)
    blog_rss: str | None = None


class LaunchTopic(Document):
    slug: str
    name: str


class MonitorSettings(Document):
    slack_webhook_url: str | None = None
    product_hunt_token: str | None = None
    product_hunt_topics: list[LaunchTopic] = Field(default_factory=list)
    announcement_keywords: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ANNOUNCEMENT_KEYWORDS.items()}
    )
    ph_min_votes: int = 0


class MonitorConfig(Document):
    competitors: list[Competitor] = Field(default_factory=list)
    settings: MonitorSettings = Field(default_factory=MonitorSettings)


# ══════════════════════════════════════════════════════════════════════
# PERSISTED STATE
# ══════════════════════════════════════════════════════════════════════

class SeoSignals(Document):
    title: str | None = None
    meta_description: str | None = None
    og_title: str | None = None
    og_description: str | None = None
    h1s: list[str] = Field(default_factory=list)


class PageState(Document):
    hash: str | None = None
    text_snapshot: str | None = None
    last_checked: str | None = None
    last_changed: str | None = None

    @property
    def status(self) -> PageStatus:
        return PageStatus.NEVER_SEEN if self.hash is None else PageStatus.STABLE


class BlogState(Document):
    post_ids: list[str] = Field(default_factory=list)


class PricingPlan(Document):
    name: str
    price: str = ""
    features: list[str] = Field(default_factory=list)

    @field_validator("price", mode="before")
    @classmethod
    def _none_price(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("features", mode="before")
    @classmethod
    def _none_features(cls, value: Any) -> Any:
        return [] if value is None else value


class PricingDocument(Document):
    plans: list[PricingPlan] = Field(default_factory=list)
    notes: str = ""

    @field_validator("notes", mode="before")
    @classmethod
    def _none_notes(cls, value: Any) -> Any:
        return "" if value is None else value


class CompetitorState(Document):
    pages: dict[str, PageState] = Field(default_factory=dict)
    blog: BlogState = Field(default_factory=BlogState)
    seo: dict[str, SeoSignals] = Field(default_factory=dict)
    pricing: PricingDocument | None = None


class LaunchFeedState(Document):
    post_ids: list[str] = Field(default_factory=list)


class MonitorState(Document):
    version: int = Field(default=STATE_VERSION, alias="_version")
    competitors: dict[str, CompetitorState] = Field(default_factory=dict)
    product_hunt: dict[str, LaunchFeedState] = Field(default_factory=dict)


class DiffExcerpt(Document):
    before: str = ""
    after: str = ""


class HistoryEvent(Document):
    date: str
    type: EventType
    priority: Priority
    summary: str = ""
    competitor: str | None = None
    page_id: str | None = None
    page_label: str | None = None
    analysis: str | None = None
    recommendation: str | None = None
    category: str | None = None
    url: str | None = None
    diff: DiffExcerpt | None = None
    votes: int | None = None
    topic: str | None = None

    def to_json_dict(self, **kwargs: Any) -> dict[str, Any]:
        return super().to_json_dict(exclude_none=True, **kwargs)


# ══════════════════════════════════════════════════════════════════════
# LLM RESULTS (validated before they touch state)
# ══════════════════════════════════════════════════════════════════════

class _PriorityDocument(Document):
    @field_validator("priority", mode="before", check_fields=False)
    @classmethod
    def _lower_priority(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class PageAnalysis(_PriorityDocument):
    summary: str
    priority: Priority
    analysis: str = ""
    recommendation: str = ""

    @field_validator("analysis", "recommendation", mode="before")
    @classmethod
    def _none_text(cls, value: Any) -> Any:
        return "" if value is None else value


class AnnouncementClassification(_PriorityDocument):
    category: str
    priority: Priority = Priority.MEDIUM
    summary: str = ""


# ══════════════════════════════════════════════════════════════════════
# EXTERNAL FEEDS
# ══════════════════════════════════════════════════════════════════════

class LaunchPost(Document):
    """A Product Hunt post node."""

    id: str
    name: str = ""
    tagline: str = ""
    url: str = ""
    votes_count: int = 0
    created_at: str | None = None
    website: str | None = None


@dataclass(frozen=True, slots=True)
class RssItem:
    id: str
    title: str
    link: str


# ══════════════════════════════════════════════════════════════════════
# TRANSIENT SCAN VALUES
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class TextDiff:
    added: list[str]
    removed: list[str]
    before_excerpt: str
    after_excerpt: str
    change_ratio: float


@dataclass(frozen=True, slots=True)
class SeoChange:
    field: str
    old: str | None
    new: str | None


@dataclass(frozen=True, slots=True)
class Alert:
    """A formatted chat message and the tier it is dispatched in."""

    text: str
    priority: Priority


@dataclass(slots=True)
class ScanResult:
    alerts: list[Alert] = field(default_factory=list)
    events: list[HistoryEvent] = field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════
# DASHBOARD
# ══════════════════════════════════════════════════════════════════════

class DashboardPage(Document):
    id: str
    label: str
    type: PageType
    url: str
    last_checked: str | None = None
    last_changed: str | None = None


class DashboardCompetitor(Document):
    name: str
    website: str
    pricing: PricingDocument | None = None
    seo: dict[str, SeoSignals] = Field(default_factory=dict)
    pages: list[DashboardPage] = Field(default_factory=list)
    blog_rss: str | None = None


class DashboardProjection(Document):
    generated_at: str
    competitors: list[DashboardCompetitor] = Field(default_factory=list)
    recent_changes: list[HistoryEvent] = Field(default_factory=list)

    def to_json_dict(self, **kwargs: Any) -> dict[str, Any]:
        data = super().to_json_dict(**kwargs)
        data["recentChanges"] = [e.to_json_dict() for e in self.recent_changes]
        return data
