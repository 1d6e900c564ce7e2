"""
Text differ — sentence-level set difference between two visible-text
snapshots. Only needs to surface excerpts for the analyst, so there is
no alignment (LCS) step.
"""

from __future__ import annotations

import re

from workers.monitor.models import TextDiff

MIN_SENTENCE_CHARS = 15
MAX_SENTENCES = 10
EXCERPT_SENTENCES = 3
MAX_EXCERPT_CHARS = 500

_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def _sentences(text: str) -> list[str]:
    """Unique sentences longer than 15 chars, first-seen order."""
    parts = (s for s in _SENTENCE_BREAK.split(text) if len(s) > MIN_SENTENCE_CHARS)
    return list(dict.fromkeys(parts))


def _excerpt(sentences: list[str]) -> str:
    return " ".join(sentences[:EXCERPT_SENTENCES])[:MAX_EXCERPT_CHARS]


def compute_text_diff(old_text: str, new_text: str) -> TextDiff:
    old = _sentences(old_text)
    new = _sentences(new_text)
    old_set, new_set = set(old), set(new)

    added = [s for s in new if s not in old_set][:MAX_SENTENCES]
    removed = [s for s in old if s not in new_set][:MAX_SENTENCES]

    return TextDiff(
        added=added,
        removed=removed,
        before_excerpt=_excerpt(removed),
        after_excerpt=_excerpt(added),
        change_ratio=(len(added) + len(removed)) / max(len(old), 1),
    )
