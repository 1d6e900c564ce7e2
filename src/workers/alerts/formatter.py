"""
Slack message formatting for every alert kind.

Each formatter returns an ``Alert`` (text + priority); dispatch order is
decided by the dispatcher from the priority alone.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from workers.monitor.models import (
    Alert,
    AnnouncementClassification,
    LaunchPost,
    Page,
    PageAnalysis,
    Priority,
    RssItem,
    SeoChange,
    TextDiff,
)

PRIORITY_EMOJI: dict[Priority, str] = {
    Priority.HIGH: "🔴",
    Priority.MEDIUM: "🟡",
    Priority.LOW: "🔵",
}

CATEGORY_EMOJI: dict[str, str] = {
    "funding": "💰",
    "partnership": "🤝",
    "acquisition": "🏢",
    "events": "📅",
    "hiring": "👥",
    "product": "🚀",
    "other": "📰",
}

SEO_FIELD_LABELS: dict[str, str] = {
    "title": "Title",
    "meta_description": "Meta Desc",
    "og_title": "OG Title",
    "og_description": "OG Desc",
    "h1": "H1",
}

MAX_LISTED = 5
EXCERPT_PREVIEW = 200


def _heading(priority: Priority) -> str:
    return f"{PRIORITY_EMOJI[priority]} *{priority.value.upper()}*"


def format_page_change_alert(
    competitor_name: str,
    page: Page,
    analysis: PageAnalysis,
    diff: TextDiff | None,
    pricing_changes: Sequence[str] | None,
) -> Alert:
    lines = [f"{_heading(analysis.priority)} | *{competitor_name}* updated their {page.label}"]
    if analysis.summary:
        lines.append(f"\n*What changed:* {analysis.summary}")
    if analysis.analysis:
        lines.append(f"*Why it matters:* {analysis.analysis}")
    if analysis.recommendation:
        lines.append(f"*Action:* {analysis.recommendation}")
    if pricing_changes:
        lines.append("\n_Pricing details:_")
        lines.extend(f"  • {change}" for change in pricing_changes)
    if diff and diff.before_excerpt:
        lines.append(f"\n_Before:_ {diff.before_excerpt[:EXCERPT_PREVIEW]}...")
    if diff and diff.after_excerpt:
        lines.append(f"_After:_ {diff.after_excerpt[:EXCERPT_PREVIEW]}...")
    lines.append(f"\n<{page.url}|View page>")
    return Alert(text="\n".join(lines), priority=analysis.priority)


def format_blog_alert(competitor_name: str, posts: Sequence[RssItem]) -> Alert:
    lines = [f"{_heading(Priority.LOW)} | *{competitor_name}* published new blog posts:"]
    lines.extend(f"  • <{p.link}|{p.title}>" for p in posts[:MAX_LISTED])
    return Alert(text="\n".join(lines), priority=Priority.LOW)


def format_announcement_alert(
    competitor_name: str,
    post: RssItem,
    classification: AnnouncementClassification,
) -> Alert:
    priority = classification.priority
    cat_emoji = CATEGORY_EMOJI.get(classification.category, CATEGORY_EMOJI["other"])
    lines = [
        f"{_heading(priority)} | *{competitor_name}* made an announcement",
        f"{cat_emoji} *Category:* {classification.category or 'unknown'}",
        f'*"{post.title}"*',
    ]
    if classification.summary and classification.summary != post.title:
        lines.append(f"_{classification.summary}_")
    lines.append(f"<{post.link}|Read post>")
    return Alert(text="\n".join(lines), priority=priority)


def format_seo_alert(
    competitor_name: str,
    page_label: str,
    page_url: str,
    changes: Sequence[SeoChange],
) -> Alert:
    lines = [f"{_heading(Priority.LOW)} | *{competitor_name}* changed SEO on {page_label}"]
    for change in changes[:MAX_LISTED]:
        label = SEO_FIELD_LABELS.get(change.field, change.field)
        if change.old and change.new:
            lines.append(f'  • *{label}:* "{change.old}" → "{change.new}"')
        elif change.new:
            lines.append(f'  • *{label}:* Added "{change.new}"')
        else:
            lines.append(f'  • *{label}:* Removed "{change.old}"')
    lines.append(f"<{page_url}|View page>")
    return Alert(text="\n".join(lines), priority=Priority.LOW)


def format_launch_alert(topic_name: str, posts: Sequence[LaunchPost]) -> Alert:
    lines = [f"{_heading(Priority.MEDIUM)} | New launches in {topic_name}:"]
    for post in posts[:MAX_LISTED]:
        votes = f" ({post.votes_count} votes)" if post.votes_count > 0 else ""
        lines.append(f"  • <{post.url}|{post.name}>{votes}")
        lines.append(f"    _{post.tagline}_")
    return Alert(text="\n".join(lines), priority=Priority.MEDIUM)


def format_digest_header(alerts: Sequence[Alert], now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    counts = {p: sum(1 for a in alerts if a.priority == p) for p in Priority}
    parts = [f"{n} {p.value}" for p, n in counts.items() if n]
    date = f"{now:%b} {now.day}, {now.year}"
    return (
        f"🐕 *ScopeHound Daily Report* — {date}\n\n"
        f"{len(alerts)} change(s) detected: {', '.join(parts)}"
    )
