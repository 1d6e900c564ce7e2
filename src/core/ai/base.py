"""
src/core/ai/base.py
===================
Text-in/text-out contract the analyst uses for every LLM call.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any

class BaseAIProvider(ABC):
    """
    One user message in, the model's raw reply out.

    Implementations never raise on provider errors: they log and return
    an empty string, which downstream JSON extraction treats as "no answer".
    """

    def __init__(self, api_key: str, model_name: str, settings: dict[str, Any] | None = None) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.settings = settings or {}

    @property
    def temperature(self) -> float:
        return self.settings.get("temperature", 0.2)

    @abstractmethod
    async def generate_text(self, prompt: str, max_tokens: int | None = None) -> str:
        """Reply to ``prompt``, capped at ``max_tokens`` output tokens."""
