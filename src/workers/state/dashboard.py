"""Dashboard projection — read model over current state and pruned history."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from workers.monitor.models import (
    Competitor,
    CompetitorState,
    DashboardCompetitor,
    DashboardPage,
    DashboardProjection,
    HistoryEvent,
    MonitorState,
)
from workers.state.store import iso

RECENT_CHANGES = 50


def build_dashboard_projection(
    state: MonitorState,
    history: Sequence[HistoryEvent],
    competitors: Sequence[Competitor],
    now: datetime,
) -> DashboardProjection:
    cards = []
    for comp in competitors:
        cs = state.competitors.get(comp.name) or CompetitorState()
        pages = []
        for page in comp.pages:
            ps = cs.pages.get(page.id)
            pages.append(
                DashboardPage(
                    id=page.id,
                    label=page.label,
                    type=page.type,
                    url=page.url,
                    last_checked=ps.last_checked if ps else None,
                    last_changed=ps.last_changed if ps else None,
                )
            )
        cards.append(
            DashboardCompetitor(
                name=comp.name,
                website=comp.website,
                pricing=cs.pricing,
                seo=cs.seo,
                pages=pages,
                blog_rss=comp.blog_rss,
            )
        )

    return DashboardProjection(
        generated_at=iso(now),
        competitors=cards,
        recent_changes=list(reversed(history[-RECENT_CHANGES:])),
    )
