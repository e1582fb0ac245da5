"""
Tests for the LLM provider factory, the OpenAI provider request shape and the
LLM connectivity endpoint.
"""

from types import SimpleNamespace

import pytest
from openai import OpenAIError

from api.routes import ai_generator as ai_generator_routes
from core.ai.factory import AIFactory
from core.ai.gemini import GeminiProvider
from core.ai.openai import OpenAIProvider
from core.config import settings
from core.exceptions import AIProviderError


class _StubCompletions:
    def __init__(self, content='{"ok": true}', error=None):
        self.calls = []
        self.content = content
        self.error = error

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _openai_with(completions) -> OpenAIProvider:
    provider = OpenAIProvider(api_key="sk-test", model_name="gpt-4o-mini", settings={"temperature": 0.2})
    provider.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return provider


def test_factory_routes_by_model_name():
    gemini = AIFactory.create("gemini-1.5-flash", api_key="g-key")
    gpt = AIFactory.create("gpt-4o-mini", api_key="sk-test")

    assert isinstance(gemini, GeminiProvider)
    assert isinstance(gpt, OpenAIProvider)
    assert gpt.settings["temperature"] == settings.llm_temperature


def test_factory_defaults_to_configured_model():
    provider = AIFactory.create(api_key="sk-test")

    assert provider.model_name == settings.llm_model


async def test_openai_json_mode_requests_json_object():
    completions = _StubCompletions('{"category": "Travel"}')
    provider = _openai_with(completions)

    result = await provider.generate_json("prompt", system_prompt="system")

    assert result == {"category": "Travel"}
    call = completions.calls[0]
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"][0] == {"role": "system", "content": "system"}
    assert call["temperature"] == 0.2


async def test_openai_errors_become_provider_errors():
    provider = _openai_with(_StubCompletions(error=OpenAIError("quota exceeded")))

    with pytest.raises(AIProviderError, match="quota exceeded"):
        await provider.generate_text("prompt")


async def test_llm_test_connection_endpoint(client, monkeypatch):
    async def ok():
        return True

    monkeypatch.setattr(
        ai_generator_routes.AIFactory, "create",
        staticmethod(lambda model_name=None, api_key=None: SimpleNamespace(test_connection=ok)),
    )

    response = await client.post("/api/admin/ai-generator/test-connection", json={"modelName": "gpt-4o-mini"})

    assert response.json() == {"success": True, "message": "Successfully connected to gpt-4o-mini"}


async def test_llm_test_connection_endpoint_reports_errors(client, monkeypatch):
    def broken(model_name=None, api_key=None):
        raise ValueError("bad key")

    monkeypatch.setattr(ai_generator_routes.AIFactory, "create", staticmethod(broken))

    response = await client.post("/api/admin/ai-generator/test-connection")

    assert response.json() == {"success": False, "message": "bad key"}
