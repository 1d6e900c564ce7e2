"""
src/core/ai/gemini.py
=====================
Google Gemini provider.
"""

from __future__ import annotations

import logging

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPIError
from core.ai.base import BaseAIProvider

logger = logging.getLogger(__name__)

class GeminiProvider(BaseAIProvider):
    """Used for every model name that is not an OpenAI one."""

    def __init__(self, api_key: str, model_name: str = "gemini-1.5-flash", settings: dict | None = None) -> None:
        super().__init__(api_key, model_name, settings)
        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(model_name=self.model_name)

    async def generate_text(self, prompt: str, max_tokens: int | None = None) -> str:
        config = {"temperature": self.temperature}
        if max_tokens:
            config["max_output_tokens"] = max_tokens
        try:
            response = await self.model.generate_content_async(prompt, generation_config=config)
            return response.text
        except (GoogleAPIError, ValueError) as exc:
            # ValueError: blocked reply, no candidates to read .text from
            logger.warning("Gemini error (%s): %s", self.model_name, exc)
            return ""
