"""
State migration v1 → v2.

v1 kept one flat blob per competitor (``blogPostIds``, ``pricingHash``,
``pricing``) plus ``ph_<slug>`` entries for launch-feed topics. v2 nests
everything under ``competitors`` / ``productHunt`` and tracks each page
separately. The upgrade is a pure function of the legacy document and
the current config; the state store persists the result.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from workers.monitor.models import (
    STATE_VERSION,
    BlogState,
    Competitor,
    CompetitorState,
    LaunchFeedState,
    LaunchTopic,
    MonitorState,
    PageState,
    PageType,
    PricingDocument,
)

logger = logging.getLogger(__name__)


def _legacy_pricing(raw: Any, competitor: str) -> PricingDocument | None:
    if raw is None:
        return None
    try:
        return PricingDocument.model_validate(raw)
    except ValidationError:
        logger.warning("Dropping unreadable legacy pricing for %s", competitor)
        return None


def _string_ids(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(x) for x in raw]


def migrate_state(
    legacy: dict[str, Any],
    competitors: Sequence[Competitor],
    topics: Sequence[LaunchTopic],
    now_iso: str,
) -> MonitorState:
    """Build a v2 document from a v1 (or unversioned) one."""
    state = MonitorState(version=STATE_VERSION)

    for comp in competitors:
        old = legacy.get(comp.name)
        if not isinstance(old, dict):
            continue
        cs = CompetitorState(
            blog=BlogState(post_ids=_string_ids(old.get("blogPostIds"))),
            pricing=_legacy_pricing(old.get("pricing"), comp.name),
        )
        pricing_hash = old.get("pricingHash")
        if pricing_hash:
            pricing_page = next((p for p in comp.pages if p.type == PageType.PRICING), None)
            if pricing_page is not None:
                cs.pages[pricing_page.id] = PageState(
                    hash=str(pricing_hash),
                    text_snapshot=None,
                    last_checked=now_iso,
                    last_changed=None,
                )
        state.competitors[comp.name] = cs

    for topic in topics:
        old = legacy.get(f"ph_{topic.slug}")
        if isinstance(old, dict):
            state.product_hunt[topic.slug] = LaunchFeedState(post_ids=_string_ids(old.get("postIds")))

    logger.info("State migrated v1 → v2 (%d competitors)", len(state.competitors))
    return state
