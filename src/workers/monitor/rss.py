"""Lenient RSS item extraction. Malformed feeds yield whatever items parse."""

from __future__ import annotations

import re

from workers.monitor.models import RssItem

MAX_ITEMS = 10

_ITEM = re.compile(r"<item(?:\s[^>]*)?>([\s\S]*?)</item>", re.IGNORECASE)
_TITLE = re.compile(r"<title>(?:<!\[CDATA\[)?([\s\S]*?)(?:\]\]>)?</title>", re.IGNORECASE)
_LINK = re.compile(r"<link>(?:<!\[CDATA\[)?([\s\S]*?)(?:\]\]>)?</link>", re.IGNORECASE)
_GUID = re.compile(r"<guid[^>]*>(?:<!\[CDATA\[)?([\s\S]*?)(?:\]\]>)?</guid>", re.IGNORECASE)


def _capture(pattern: re.Pattern[str], text: str) -> str:
    match = pattern.search(text)
    return match.group(1) if match else ""


def parse_rss_feed(xml: str) -> list[RssItem]:
    """
    First 10 ``<item>`` blocks as (id, title, link).

    Identity is the guid, falling back to the link, then the title.
    """
    items: list[RssItem] = []
    for match in _ITEM.finditer(xml):
        body = match.group(1)
        title = _capture(_TITLE, body) or "Untitled"
        link = _capture(_LINK, body)
        guid = _capture(_GUID, body) or link or title
        items.append(RssItem(id=guid.strip(), title=title.strip(), link=link.strip()))
        if len(items) >= MAX_ITEMS:
            break
    return items
