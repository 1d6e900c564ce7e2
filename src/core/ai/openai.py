"""
src/core/ai/openai.py
=====================
OpenAI chat-completions provider.
"""

from __future__ import annotations

import logging

from openai import AsyncOpenAI, OpenAIError
from core.ai.base import BaseAIProvider

logger = logging.getLogger(__name__)

class OpenAIProvider(BaseAIProvider):
    """gpt-4o-mini by default; any chat-completions model works."""

    def __init__(self, api_key: str, model_name: str = "gpt-4o-mini", settings: dict | None = None) -> None:
        super().__init__(api_key, model_name, settings)
        self.client = AsyncOpenAI(api_key=self.api_key)

    async def generate_text(self, prompt: str, max_tokens: int | None = None) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as exc:
            logger.warning("OpenAI error (%s): %s", self.model_name, exc)
            return ""
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
