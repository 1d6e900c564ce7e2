"""
src/core/ai/factory.py
======================
Factory for AI providers.
"""

from __future__ import annotations

import logging
from typing import Any
from core.config import settings
from core.ai.base import BaseAIProvider
from core.ai.gemini import GeminiProvider
from core.ai.openai import OpenAIProvider

logger = logging.getLogger(__name__)

class AIFactory:
    """
    Static factory to create the correct AI provider.
    """

    @staticmethod
    def create(model_name: str, api_key: str | None = None, **kwargs: Any) -> BaseAIProvider:
        """
        Create a provider based on model name.
        """
        m = model_name.lower()

        if "gpt" in m or "o1" in m:
            return OpenAIProvider(
                api_key=api_key or settings.openai_api_key or "",
                model_name=model_name,
                settings=kwargs
            )
        # Gemini is also the fallback for unknown prefixes
        return GeminiProvider(
            api_key=api_key or settings.gemini_api_key or "",
            model_name=model_name,
            settings=kwargs
        )

    @staticmethod
    def from_settings() -> BaseAIProvider | None:
        """
        Provider for the configured ``llm_model``, or None when no API key
        is available for it (the analysis layer then uses its defaults).
        """
        m = settings.llm_model.lower()
        key = settings.openai_api_key if ("gpt" in m or "o1" in m) else settings.gemini_api_key
        if not key:
            logger.info("No API key for %s, LLM analysis disabled.", settings.llm_model)
            return None
        return AIFactory.create(settings.llm_model, temperature=settings.llm_temperature)
