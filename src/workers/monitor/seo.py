"""
SEO signal extraction (pure regex, no AI).

Meta tags are matched in both attribute orders (``name=… content=…`` and
``content=… name=…``) since CMSs emit either.
"""

from __future__ import annotations

import re

from workers.monitor.models import SeoChange, SeoSignals

_TITLE = re.compile(r"<title[^>]*>([\s\S]*?)</title>", re.IGNORECASE)
_H1 = re.compile(r"<h1[^>]*>([\s\S]*?)</h1>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")


def _meta_patterns(attr: str, value: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    return (
        re.compile(
            rf"""<meta[^>]*{attr}=["']{value}["'][^>]*content=["']([\s\S]*?)["']""",
            re.IGNORECASE,
        ),
        re.compile(
            rf"""<meta[^>]*content=["']([\s\S]*?)["'][^>]*{attr}=["']{value}["']""",
            re.IGNORECASE,
        ),
    )


_META_DESCRIPTION = _meta_patterns("name", "description")
_OG_TITLE = _meta_patterns("property", "og:title")
_OG_DESCRIPTION = _meta_patterns("property", "og:description")

SEO_FIELDS = ("title", "meta_description", "og_title", "og_description")


def _first(html: str, *patterns: re.Pattern[str]) -> str | None:
    """Trimmed first capture; an empty capture falls through to the next pattern."""
    value = None
    for pattern in patterns:
        match = pattern.search(html)
        value = match.group(1).strip() if match else None
        if value:
            return value
    return value


def extract_seo_signals(html: str) -> SeoSignals:
    return SeoSignals(
        title=_first(html, _TITLE),
        meta_description=_first(html, *_META_DESCRIPTION),
        og_title=_first(html, *_OG_TITLE),
        og_description=_first(html, *_OG_DESCRIPTION),
        h1s=[_TAG.sub("", m.group(1)).strip() for m in _H1.finditer(html)],
    )


def compare_seo_signals(
    old: SeoSignals | None,
    new: SeoSignals | None,
) -> list[SeoChange] | None:
    """
    One change per differing scalar field, plus ``h1`` when the
    comma-joined H1 lists differ. None when nothing changed.

    ``None`` vs ``""`` is not reported: a field only counts as changed
    when at least one side is non-empty.
    """
    if old is None or new is None:
        return None

    changes: list[SeoChange] = []
    for name in SEO_FIELDS:
        before, after = getattr(old, name), getattr(new, name)
        if before != after and (before or after):
            changes.append(SeoChange(field=name, old=before, new=after))

    old_h1 = ", ".join(old.h1s)
    new_h1 = ", ".join(new.h1s)
    if old_h1 != new_h1:
        changes.append(SeoChange(field="h1", old=old_h1, new=new_h1))

    return changes or None
