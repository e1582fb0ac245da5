"""
src/core/ai/gemini.py
=====================
Google Gemini implementation.
"""

from __future__ import annotations

from typing import Any

import google.generativeai as genai

from core.ai.base import BaseAIProvider
from core.exceptions import AIProviderError


class GeminiProvider(BaseAIProvider):
    """
    Provider for Google Gemini models.
    """

    def __init__(self, api_key: str, model_name: str = "gemini-1.5-pro", settings: dict | None = None) -> None:
        super().__init__(api_key, model_name, settings)
        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(
            model_name=self.model_name,
            generation_config=self._generation_config(),
        )

    def _generation_config(self, json_mode: bool = False) -> dict[str, Any]:
        config: dict[str, Any] = {"temperature": self.settings.get("temperature", 0.7)}
        if json_mode:
            config["response_mime_type"] = "application/json"
        return config

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        *,
        json_mode: bool = False,
    ) -> str:
        if system_prompt or json_mode:
            # system_instruction is a constructor argument on 1.5 models
            model = genai.GenerativeModel(
                model_name=self.model_name,
                system_instruction=system_prompt,
                generation_config=self._generation_config(json_mode),
            )
        else:
            model = self.model

        try:
            response = await model.generate_content_async(prompt)
            return response.text
        except Exception as e:
            # the SDK raises google.api_core errors and ValueError for blocked replies
            raise AIProviderError(f"Error with Gemini: {e}") from e

    async def test_connection(self) -> bool:
        try:
            # Minimal request to test key
            await self.model.generate_content_async("Hi", generation_config={"max_output_tokens": 1})
            return True
        except Exception:
            return False
