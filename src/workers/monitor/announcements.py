"""Announcement detection — first keyword hit wins, in configured order."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

DEFAULT_ANNOUNCEMENT_KEYWORDS: dict[str, list[str]] = {
    "funding": ["funding", "raised", "series a", "series b", "series c", "seed round", "investment"],
    "partnership": ["partnership", "partners with", "teaming up", "collaboration", "integrates with", "integration"],
    "acquisition": ["acquires", "acquired", "acquisition", "merger", "merged with"],
    "events": ["webinar", "conference", "summit", "event", "keynote", "workshop"],
    "hiring": ["hiring", "we're growing", "join our team", "open positions", "careers"],
    "product": ["launch", "launching", "introduces", "announcing", "new feature", "now available", "release"],
}


def detect_announcement(
    title: str,
    keywords: Mapping[str, Sequence[str]],
) -> str | None:
    """Return the category of the first keyword contained in ``title``."""
    lower = title.lower()
    for category, words in keywords.items():
        for word in words:
            if word.lower() in lower:
                return category
    return None
