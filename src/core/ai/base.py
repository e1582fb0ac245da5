"""
src/core/ai/base.py
===================
Abstract base class for all AI providers.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from core.exceptions import AIProviderError


class BaseAIProvider(ABC):
    """
    Standard interface for generating content via LLMs.
    """

    def __init__(self, api_key: str, model_name: str, settings: dict[str, Any] | None = None) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.settings = settings or {}

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        *,
        json_mode: bool = False,
    ) -> str:
        """
        Generate a text response given a prompt and optional system prompt.
        Raises AIProviderError when the provider call fails.
        """
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        """
        Verify if the API key and model are valid with a minimal request.
        """
        pass

    async def generate_json(self, prompt: str, system_prompt: str | None = None) -> dict[str, Any]:
        """
        Ask for a JSON object and decode it.
        Raises AIProviderError on call failure or when the reply is not a JSON object.
        """
        raw = await self.generate_text(prompt, system_prompt=system_prompt, json_mode=True)
        return parse_json_object(raw)


def parse_json_object(raw: str) -> dict[str, Any]:
    """Decode an LLM reply into a dict, tolerating ```json fences."""
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        data = json.loads(text or "{}")
    except json.JSONDecodeError as exc:
        raise AIProviderError(f"Malformed JSON from model: {exc}") from exc
    if not isinstance(data, dict):
        raise AIProviderError(f"Expected a JSON object, got {type(data).__name__}")
    return data
