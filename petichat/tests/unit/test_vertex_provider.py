from __future__ import annotations

import pytest

from petichat.core.config import get_settings
from petichat.core.errors import ProviderConfigError
from petichat.providers.ai.gemini_vertex import GeminiVertexProvider


@pytest.mark.asyncio
async def test_vertex_provider_missing_config(monkeypatch) -> None:
    # Force missing config and clear cached settings for deterministic behavior.
    monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
    monkeypatch.delenv("GOOGLE_CLOUD_LOCATION", raising=False)
    get_settings.cache_clear()

    provider = GeminiVertexProvider()
    with pytest.raises(ProviderConfigError):
        await provider.rewrite_text("texto", "improve")
