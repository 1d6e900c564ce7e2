"""Product Hunt launch-feed client (GraphQL v2)."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from core.config import settings
from workers.monitor.models import LaunchPost

logger = logging.getLogger(__name__)

POSTS_QUERY = (
    '{ posts(first: 20, topic: "%s") { edges { node '
    "{ id name tagline url votesCount createdAt website } } } }"
)


async def fetch_product_hunt_posts(
    client: httpx.AsyncClient,
    topic_slug: str,
    token: str | None,
) -> list[LaunchPost]:
    """Latest posts for a topic. Any error yields an empty list."""
    if not token:
        return []

    try:
        response = await client.post(
            settings.producthunt_api_url,
            json={"query": POSTS_QUERY % topic_slug},
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Product Hunt error (%s): %s", topic_slug, exc)
        return []

    if not isinstance(data, dict) or data.get("errors"):
        logger.warning("Product Hunt returned errors for %s", topic_slug)
        return []

    try:
        edges = data["data"]["posts"]["edges"]
        return [LaunchPost.model_validate(edge["node"]) for edge in edges]
    except (KeyError, TypeError, ValidationError) as exc:
        logger.warning("Unexpected Product Hunt payload for %s: %s", topic_slug, exc)
        return []
