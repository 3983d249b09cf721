from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from petichat.core.config import get_settings
from petichat.core.errors import ProviderConfigError, ProviderError
from petichat.providers.ai.prompted import PromptedAIProvider
from petichat.services.telemetry import record_external_call


logger = logging.getLogger(__name__)


class OpenAIChatProvider(PromptedAIProvider):
    name = "openai"

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._settings = get_settings()
        self.model = self._settings.openai_model
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        # Reuse a single client per provider for connection pooling.
        self._client = httpx.AsyncClient(timeout=self._settings.ai_timeout_ms / 1000.0)
        return self._client

    def _api_key(self) -> str:
        # Missing credentials surface on first use, never at process start.
        api_key = self._settings.openai_api_key
        if not api_key:
            raise ProviderConfigError("OpenAI config missing: set OPENAI_API_KEY in .env.")
        return api_key

    async def _complete(self, system: str, prompt: str, *, json_mode: bool) -> str:
        api_key = self._api_key()
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.3,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        url = f"{self._settings.openai_base_url.rstrip('/')}/chat/completions"
        start = time.monotonic()
        try:
            response = await self._get_client().post(
                url, json=payload, headers={"Authorization": f"Bearer {api_key}"}
            )
        except httpx.HTTPError as exc:
            record_external_call(integration="ai.openai", latency_ms=(time.monotonic() - start) * 1000.0, success=False)
            logger.warning("openai_request_failed model=%s error=%s", self.model, type(exc).__name__)
            raise ProviderError("Falha ao contactar o provedor de IA") from exc

        latency_ms = (time.monotonic() - start) * 1000.0
        if response.status_code in {401, 403}:
            record_external_call(integration="ai.openai", latency_ms=latency_ms, success=False)
            raise ProviderError("OpenAI auth error: check OPENAI_API_KEY.")
        if response.status_code >= 400:
            record_external_call(integration="ai.openai", latency_ms=latency_ms, success=False)
            logger.warning("openai_request_error model=%s status=%s", self.model, response.status_code)
            raise ProviderError(f"Erro do provedor de IA: {response.status_code}")

        record_external_call(integration="ai.openai", latency_ms=latency_ms, success=True)
        try:
            body = response.json()
            return body["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ProviderError("Resposta da IA em formato inválido") from exc
