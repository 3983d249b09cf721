from __future__ import annotations

import json

import httpx
import pytest

from petichat.core.config import get_settings
from petichat.core.errors import ProviderConfigError, ProviderError
from petichat.providers.ai.base import SuggestOptions
from petichat.providers.ai.openai_chat import OpenAIChatProvider


def _provider(monkeypatch, handler) -> OpenAIChatProvider:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    get_settings.cache_clear()
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIChatProvider(client=client)


def _chat_response(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


@pytest.mark.asyncio
async def test_openai_suggest_theses_parses_json(monkeypatch) -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return _chat_response(
            json.dumps({"theses": [{"category": "merits", "title": "Dano moral", "content": "Configurado."}]})
        )

    provider = _provider(monkeypatch, handler)
    theses = await provider.suggest_theses("fatos", SuggestOptions(max_count=3))
    assert theses[0].title == "Dano moral"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_openai_rewrite_returns_plain_text(monkeypatch) -> None:
    provider = _provider(monkeypatch, lambda request: _chat_response("  Texto reescrito.  "))
    assert await provider.rewrite_text("texto", "improve") == "Texto reescrito."


@pytest.mark.asyncio
async def test_openai_auth_failure_maps_to_provider_error(monkeypatch) -> None:
    provider = _provider(monkeypatch, lambda request: httpx.Response(401, json={"error": "bad key"}))
    with pytest.raises(ProviderError):
        await provider.rewrite_text("texto", "improve")


@pytest.mark.asyncio
async def test_openai_invalid_json_output_is_provider_error(monkeypatch) -> None:
    provider = _provider(monkeypatch, lambda request: _chat_response("não é json"))
    with pytest.raises(ProviderError):
        await provider.suggest_theses("fatos")


@pytest.mark.asyncio
async def test_openai_missing_key_is_config_error(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "")
    get_settings.cache_clear()
    provider = OpenAIChatProvider(client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: _chat_response("x"))))
    with pytest.raises(ProviderConfigError):
        await provider.rewrite_text("texto", "improve")
