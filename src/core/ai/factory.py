"""
src/core/ai/factory.py
======================
Factory for AI providers.
"""

from __future__ import annotations

from typing import Any

from core.ai.base import BaseAIProvider
from core.ai.gemini import GeminiProvider
from core.ai.openai import OpenAIProvider
from core.config import settings


class AIFactory:
    """
    Static factory to create the correct AI provider.
    """

    @staticmethod
    def create(model_name: str | None = None, api_key: str | None = None, **kwargs: Any) -> BaseAIProvider:
        """
        Create a provider based on model name (defaults to settings.llm_model).
        """
        model_name = model_name or settings.llm_model
        kwargs.setdefault("temperature", settings.llm_temperature)
        m = model_name.lower()

        if "gemini" in m:
            return GeminiProvider(
                api_key=api_key or settings.gemini_api_key or "",
                model_name=model_name,
                settings=kwargs
            )
        # gpt-*, o1-* and anything unknown go to OpenAI, the default provider
        return OpenAIProvider(
            api_key=api_key or settings.openai_api_key or "",
            model_name=model_name,
            settings=kwargs
        )
