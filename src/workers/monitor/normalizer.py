"""
HTML normalization and content fingerprinting.

``normalize_for_hash`` removes everything that changes between reloads of
an unchanged page (scripts, styles, comments, per-request attributes) so
the fingerprint only moves when content does. ``html_to_text`` produces
the visible-text extract used for sentence diffs and LLM prompts.
"""

from __future__ import annotations

import hashlib
import re

MAX_TEXT_CHARS = 10_000
HASH_BYTES = 8

_SCRIPT = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_COMMENT = re.compile(r"<!--[\s\S]*?-->")
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")

# Attributes that differ per request on otherwise identical pages
_VOLATILE_ATTRS = [
    re.compile(r'nonce="[^"]*"', re.IGNORECASE),
    re.compile(r'data-reactid="[^"]*"', re.IGNORECASE),
    re.compile(r'data-turbo-track="[^"]*"', re.IGNORECASE),
    re.compile(r'data-n-head="[^"]*"', re.IGNORECASE),
    # csrf-token="..", csrf_param="..", data-csrf=".." ...
    re.compile(r'[\w-]*csrf[\w-]*="[^"]*"', re.IGNORECASE),
]

# <meta name="csrf-token" content=".."> and <input name="authenticity_token" value="..">
_TOKEN_TAG = re.compile(r"<(?:meta|input)\b[^>]*>", re.IGNORECASE)
_TOKEN_NAME = re.compile(r'\bname="[^"]*(?:csrf|authenticity_token)[^"]*"', re.IGNORECASE)
_TOKEN_VALUE = re.compile(r'\s(?:content|value)="[^"]*"', re.IGNORECASE)

_ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
}
_ENTITY = re.compile("|".join(re.escape(e) for e in _ENTITIES))


def _strip_code(html: str) -> str:
    return _STYLE.sub("", _SCRIPT.sub("", html))


def _strip_token_value(match: re.Match[str]) -> str:
    tag = match.group(0)
    return _TOKEN_VALUE.sub("", tag) if _TOKEN_NAME.search(tag) else tag


def normalize_for_hash(html: str) -> str:
    """Canonical HTML for fingerprinting. Pure and idempotent."""
    out = _COMMENT.sub("", _strip_code(html))
    out = _TOKEN_TAG.sub(_strip_token_value, out)
    for pattern in _VOLATILE_ATTRS:
        out = pattern.sub("", out)
    return _WHITESPACE.sub(" ", out).strip()


def _text_pass(html: str) -> str:
    text = _TAG.sub(" ", _strip_code(html))
    text = _ENTITY.sub(lambda m: _ENTITIES[m.group(0)], text)
    return _WHITESPACE.sub(" ", text).strip()


def html_to_text(html: str) -> str:
    """
    Visible text, whitespace-collapsed, capped at 10k characters.

    Escaped markup such as ``&lt;b&gt;`` decodes into a tag, so passes
    repeat until the text stops changing; the result is a fixed point.
    """
    text = _text_pass(html)
    while True:
        again = _text_pass(text)
        if again == text:
            break
        text = again
    return text[:MAX_TEXT_CHARS].rstrip()


def hash_content(content: str) -> str:
    """Hex of the first 8 bytes of SHA-256 over the normalized HTML."""
    digest = hashlib.sha256(normalize_for_hash(content).encode("utf-8")).digest()
    return digest[:HASH_BYTES].hex()
