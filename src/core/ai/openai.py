"""
src/core/ai/openai.py
=====================
OpenAI implementation.
"""

from __future__ import annotations

from openai import AsyncOpenAI, OpenAIError

from core.ai.base import BaseAIProvider
from core.exceptions import AIProviderError


class OpenAIProvider(BaseAIProvider):
    """
    Provider for OpenAI (GPT-4o, etc.) models.
    """

    def __init__(self, api_key: str, model_name: str = "gpt-4o", settings: dict | None = None) -> None:
        super().__init__(api_key, model_name, settings)
        self.client = AsyncOpenAI(api_key=self.api_key)

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        *,
        json_mode: bool = False,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                temperature=self.settings.get("temperature", 0.7),
                **kwargs,
            )
        except OpenAIError as e:
            raise AIProviderError(f"Error with OpenAI: {e}") from e
        return response.choices[0].message.content or ""

    async def test_connection(self) -> bool:
        try:
            await self.client.chat.completions.create(
                model=self.model_name,
                messages=[{"role": "user", "content": "Hi"}],
                max_tokens=1
            )
            return True
        except OpenAIError:
            return False
