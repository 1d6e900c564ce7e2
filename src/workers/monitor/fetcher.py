"""
HTTP fetcher for monitored pages and feeds.

One GET with an identifying user-agent and a hard timeout. Any failure
(non-2xx, timeout, network error) yields None and a single log line;
the page is simply retried on the next scan.
"""

from __future__ import annotations

import logging

import httpx

from core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"User-Agent": settings.fetch_user_agent}


def build_http_client(**kwargs) -> httpx.AsyncClient:
    """Shared client for fetches, webhooks, and the launch-feed API."""
    return httpx.AsyncClient(
        headers=DEFAULT_HEADERS,
        timeout=settings.fetch_timeout_seconds,
        follow_redirects=True,
        **kwargs,
    )


async def fetch_url(client: httpx.AsyncClient, url: str) -> str | None:
    """Return the response body on 2xx, otherwise None. Never raises."""
    try:
        response = await client.get(
            url,
            headers=DEFAULT_HEADERS,
            timeout=settings.fetch_timeout_seconds,
        )
    except httpx.HTTPError as exc:
        logger.warning("Fetch error %s: %s", url, exc.__class__.__name__)
        return None

    if not response.is_success:
        logger.warning("Fetch error %s: %d", url, response.status_code)
        return None
    return response.text
