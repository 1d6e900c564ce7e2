"""
LLM analyst — pricing extraction, page-change analysis, announcement
classification.

Every call shares one contract: the model's reply is scanned for the
first ``{ … }`` span, parsed, and validated into a typed document. Any
failure (no provider, no JSON, bad JSON, wrong shape, provider error)
yields None, or the documented default, and never raises.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from core.ai.base import BaseAIProvider
from workers.monitor.models import (
    AnnouncementClassification,
    PageAnalysis,
    PageType,
    PricingDocument,
    Priority,
    TextDiff,
)
from workers.monitor.normalizer import html_to_text

logger = logging.getLogger(__name__)

REDESIGN_RATIO = 0.8

PRICING_MAX_TOKENS = 1000
ANALYSIS_MAX_TOKENS = 500
CLASSIFY_MAX_TOKENS = 200

_JSON_SPAN = re.compile(r"\{[\s\S]*\}")

T = TypeVar("T", bound=BaseModel)

PRICING_PROMPT = """Extract all pricing information from this webpage text. Return a JSON object with this structure:
{{"plans":[{{"name":"Plan Name","price":"$X/mo or $X/year or Custom or Free","features":["key feature 1","key feature 2"]}}],"notes":"Any important pricing notes like discounts, trials, etc."}}
If no pricing is found, return {{"plans":[],"notes":"No pricing found"}}.
Only return valid JSON, no other text.
Webpage text:
{text}"""

CHANGE_PROMPT = """You are a competitive intelligence analyst. A competitor's web page has changed.
Competitor: {competitor}
Page: {page_label}
REMOVED content: {removed}
ADDED content: {added}
Respond with ONLY valid JSON:
{{"summary":"One sentence: what specifically changed","analysis":"2-3 sentences: why this matters competitively","priority":"high or medium or low","recommendation":"One sentence: what action to take"}}
Priority guide: high = pricing/product changes, major positioning shifts. medium = feature updates, messaging changes. low = minor copy edits.
Return ONLY the JSON object."""

CLASSIFY_PROMPT = """Classify this blog post from competitor "{competitor}".
Title: "{title}"
Detected category: {category}
Respond with ONLY valid JSON:
{{"category":"funding or partnership or acquisition or event or hiring or product or other","priority":"high or medium or low","summary":"One sentence explanation"}}
Return ONLY the JSON object."""


def extract_json_object(text: str | None) -> dict | None:
    """Parse the first ``{ … }`` span of a free-form reply."""
    if not text:
        return None
    match = _JSON_SPAN.search(text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


async def _ask(
    ai: BaseAIProvider | None,
    prompt: str,
    max_tokens: int,
    model: type[T],
    purpose: str,
) -> T | None:
    if ai is None:
        return None
    try:
        reply = await ai.generate_text(prompt, max_tokens=max_tokens)
    except Exception as exc:
        logger.warning("AI %s error: %s", purpose, exc)
        return None

    data = extract_json_object(reply)
    if data is None:
        logger.info("AI %s: no JSON in reply", purpose)
        return None
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.info("AI %s: invalid shape (%d errors)", purpose, exc.error_count())
        return None


async def extract_pricing(ai: BaseAIProvider | None, html: str) -> PricingDocument | None:
    """Structured plans from a pricing page, or None."""
    prompt = PRICING_PROMPT.format(text=html_to_text(html))
    return await _ask(ai, prompt, PRICING_MAX_TOKENS, PricingDocument, "pricing")


def redesign_analysis(page_type: PageType) -> PageAnalysis:
    return PageAnalysis(
        summary="Page significantly redesigned",
        analysis="The page content changed substantially, likely a full redesign or replatform.",
        priority=Priority.HIGH if page_type == PageType.PRICING else Priority.MEDIUM,
        recommendation="Review the page manually to assess the changes.",
    )


def default_analysis(page_type: PageType) -> PageAnalysis:
    """Used when the model gives nothing usable."""
    if page_type == PageType.PRICING:
        return PageAnalysis(
            summary="Pricing page changed",
            priority=Priority.HIGH,
            recommendation="Review pricing page.",
        )
    return PageAnalysis(
        summary="Page content changed",
        priority=Priority.MEDIUM,
        recommendation="Review the page.",
    )


async def analyze_page_change(
    ai: BaseAIProvider | None,
    competitor_name: str,
    page_label: str,
    page_type: PageType,
    diff: TextDiff,
) -> PageAnalysis | None:
    """
    LLM assessment of a page diff. Diffs above the redesign ratio skip
    the model entirely.
    """
    if diff.change_ratio > REDESIGN_RATIO:
        return redesign_analysis(page_type)

    prompt = CHANGE_PROMPT.format(
        competitor=competitor_name,
        page_label=page_label,
        removed=diff.before_excerpt or "(none)",
        added=diff.after_excerpt or "(none)",
    )
    return await _ask(ai, prompt, ANALYSIS_MAX_TOKENS, PageAnalysis, "analysis")


async def classify_announcement(
    ai: BaseAIProvider | None,
    competitor_name: str,
    post_title: str,
    matched_category: str,
) -> AnnouncementClassification:
    prompt = CLASSIFY_PROMPT.format(
        competitor=competitor_name,
        title=post_title,
        category=matched_category,
    )
    result = await _ask(ai, prompt, CLASSIFY_MAX_TOKENS, AnnouncementClassification, "classify")
    if result is None:
        return AnnouncementClassification(
            category=matched_category,
            priority=Priority.MEDIUM,
            summary=post_title,
        )
    return result
