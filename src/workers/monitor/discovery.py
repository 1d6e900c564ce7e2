"""
Page Discovery Module — setup-time helpers
==========================================
Suggests which competitor pages to monitor and finds their blog feed.

Discovery only looks at same-origin links whose path matches a known
section (``/pricing``, ``/blog``, ``/careers``, ...). It never crawls
beyond the homepage.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from workers.monitor.fetcher import DEFAULT_HEADERS, fetch_url
from workers.monitor.models import PageType

logger = logging.getLogger(__name__)

FEED_PATHS = ["/feed/", "/blog/feed/", "/rss.xml", "/blog/rss.xml", "/feed.xml", "/atom.xml"]
FEED_MARKERS = ("<rss", "<feed", "<item>")
FEED_LINK_TYPES = ("application/rss+xml", "application/atom+xml")
PRICING_PROBES = ["/pricing", "/plans"]

# ── Section classification rules (first matching link wins) ───────────

SECTION_PATTERNS: list[tuple[tuple[str, ...], PageType, str]] = [
    (("/pricing", "/plans", "/plan", "/price"), PageType.PRICING, "Pricing"),
    (("/blog", "/news", "/updates", "/changelog", "/articles"), PageType.BLOG, "Blog"),
    (("/careers", "/jobs", "/hiring", "/join"), PageType.CAREERS, "Careers"),
    (("/features", "/product"), PageType.GENERAL, "Features"),
]


@dataclass
class DiscoveredPage:
    url: str
    type: PageType
    label: str
    rss: str | None = None

    def to_json_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        if self.rss is None:
            data.pop("rss")
        return data


def _feed_link(soup: BeautifulSoup, base_url: str) -> str | None:
    for link in soup.find_all("link", href=True):
        if (link.get("type") or "").lower() in FEED_LINK_TYPES:
            return urljoin(base_url + "/", link["href"])
    return None


async def detect_rss_feed(client: httpx.AsyncClient, website: str) -> str | None:
    """Probe well-known feed paths, then the homepage ``<link>`` tags."""
    base = website.rstrip("/")
    for path in FEED_PATHS:
        try:
            response = await client.get(base + path, headers=DEFAULT_HEADERS)
        except httpx.HTTPError:
            continue
        if not response.is_success:
            continue
        content_type = response.headers.get("content-type", "")
        if any(m in content_type for m in ("xml", "rss", "atom")) or any(
            m in response.text for m in FEED_MARKERS
        ):
            return base + path

    html = await fetch_url(client, base)
    if html:
        return _feed_link(BeautifulSoup(html, "html.parser"), base)
    return None


async def _url_exists(client: httpx.AsyncClient, url: str) -> bool:
    try:
        response = await client.head(url, headers=DEFAULT_HEADERS)
    except httpx.HTTPError:
        return False
    return response.is_success


async def discover_pages(client: httpx.AsyncClient, website: str) -> list[DiscoveredPage]:
    """
    Homepage plus the first link found for each known section.

    Blog entries carry the feed URL when one is advertised or probed.
    """
    base = website.rstrip("/")
    parsed = urlparse(base)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    pages = [DiscoveredPage(url=base, type=PageType.GENERAL, label="Homepage")]
    seen = {base, base + "/"}

    html = await fetch_url(client, base)
    if not html:
        return pages

    soup = BeautifulSoup(html, "html.parser")
    rss_url = _feed_link(soup, origin)

    links: list[tuple[str, str]] = []
    for a_tag in soup.find_all("a", href=True):
        href = a_tag["href"].strip()
        if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
            continue
        absolute = urljoin(origin + "/", href)
        target = urlparse(absolute)
        if target.scheme not in ("http", "https") or target.netloc != parsed.netloc:
            continue
        clean = absolute.split("?")[0].split("#")[0]
        links.append((clean, target.path.lower()))

    for paths, page_type, label in SECTION_PATTERNS:
        for href, path in links:
            if path in paths or path.rstrip("/") in paths:
                if href not in seen:
                    pages.append(
                        DiscoveredPage(
                            url=href,
                            type=page_type,
                            label=label,
                            rss=rss_url if page_type == PageType.BLOG else None,
                        )
                    )
                    seen.add(href)
                break

    has_blog = any(p.type == PageType.BLOG for p in pages)
    if not has_blog:
        rss_url = rss_url or await detect_rss_feed(client, base)
        if rss_url:
            pages.append(DiscoveredPage(url=base + "/blog", type=PageType.BLOG, label="Blog", rss=rss_url))

    if not any(p.type == PageType.PRICING for p in pages):
        for path in PRICING_PROBES:
            if await _url_exists(client, origin + path):
                pages.append(DiscoveredPage(url=origin + path, type=PageType.PRICING, label="Pricing"))
                break

    logger.info("Discovered %d pages for %s", len(pages), base)
    return pages
