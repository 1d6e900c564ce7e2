"""
Slack webhook notification sender.

Sends plain-text messages to a Slack channel via incoming webhooks.
Delivery failures are logged and swallowed: one failed message never
stops the rest of a digest.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

SKIP_PREVIEW_CHARS = 80


async def send_slack_message(
    client: httpx.AsyncClient,
    webhook_url: str | None,
    text: str,
) -> bool:
    """
    POST ``{"text": text}`` to the webhook.

    Args:
        client: Shared HTTP client.
        webhook_url: Incoming webhook. When empty the message is only logged.
        text: Message body (Slack mrkdwn).

    Returns:
        True if sent successfully, False otherwise.
    """
    if not webhook_url:
        logger.info("[slack skip] %s", text[:SKIP_PREVIEW_CHARS])
        return False

    try:
        response = await client.post(webhook_url, json={"text": text}, timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("Failed to send Slack alert: %s", exc)
        return False
    return True
