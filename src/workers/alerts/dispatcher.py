"""
Alert dispatcher — delivers one scan's alerts to the chat webhook.

Order: digest header, every HIGH alert (one message each), every MEDIUM
alert, then all LOW alerts collapsed into a single message. Within a tier
messages keep detection order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

import httpx

from core.notifications.slack import send_slack_message
from workers.alerts.formatter import format_digest_header
from workers.monitor.models import Alert, Priority

logger = logging.getLogger(__name__)

LOW_SEPARATOR = "\n\n---\n\n"


def build_digest(alerts: Sequence[Alert], now: datetime | None = None) -> list[str]:
    """Messages to send, in delivery order."""
    if not alerts:
        return []
    messages = [format_digest_header(alerts, now)]
    messages.extend(a.text for a in alerts if a.priority == Priority.HIGH)
    messages.extend(a.text for a in alerts if a.priority == Priority.MEDIUM)
    low = [a.text for a in alerts if a.priority == Priority.LOW]
    if low:
        messages.append(LOW_SEPARATOR.join(low))
    return messages


async def dispatch_alerts(
    client: httpx.AsyncClient,
    webhook_url: str | None,
    alerts: Sequence[Alert],
    now: datetime | None = None,
) -> int:
    """Send the digest sequentially. Returns the number of messages delivered."""
    messages = build_digest(alerts, now)
    if not messages:
        logger.info("No changes detected.")
        return 0

    logger.info("📤 Sending %d alert(s) in %d message(s)", len(alerts), len(messages))
    delivered = 0
    for message in messages:
        if await send_slack_message(client, webhook_url, message):
            delivered += 1
    return delivered
