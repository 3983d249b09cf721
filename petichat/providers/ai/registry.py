from __future__ import annotations

import logging
from typing import Callable

from petichat.core.config import get_settings
from petichat.providers.ai.base import AIProvider
from petichat.providers.ai.fake import FakeAIProvider
from petichat.providers.ai.gemini_vertex import GeminiVertexProvider
from petichat.providers.ai.openai_chat import OpenAIChatProvider


logger = logging.getLogger(__name__)

_ALIASES: dict[str, str] = {
    "mock": "fake",
    "google": "gemini",
    "vertex": "gemini",
}

DEFAULT_FACTORIES: dict[str, Callable[[], AIProvider]] = {
    "openai": OpenAIChatProvider,
    "gemini": GeminiVertexProvider,
    "fake": FakeAIProvider,
}


class ProviderRegistry:
    """Builds AI providers once per process and hands out the cached instance.

    Constructed at process start (API app or worker) and passed to every
    component that needs AI capability.
    """

    def __init__(
        self,
        default: str | None = None,
        factories: dict[str, Callable[[], AIProvider]] | None = None,
    ) -> None:
        self._default = default
        self._factories = dict(factories or DEFAULT_FACTORIES)
        self._instances: dict[str, AIProvider] = {}

    def resolve_name(self, name: str | None = None) -> str:
        # Explicit argument wins, then the process-wide setting.
        raw = (name or self._default or get_settings().ai_provider or "openai").strip().lower()
        resolved = _ALIASES.get(raw, raw)
        if resolved not in self._factories:
            logger.warning("ai_provider_unknown name=%s fallback=fake", raw)
            return "fake"
        return resolved

    def get(self, name: str | None = None) -> AIProvider:
        resolved = self.resolve_name(name)
        provider = self._instances.get(resolved)
        if provider is None:
            # Construction never validates credentials; that happens on first call.
            provider = self._factories[resolved]()
            self._instances[resolved] = provider
            logger.info("ai_provider_ready name=%s model=%s", resolved, provider.model)
        return provider

    def register(self, name: str, provider: AIProvider) -> None:
        # Pin a prebuilt instance, mainly for tests and scripts.
        self._instances[name] = provider
        self._factories.setdefault(name, lambda: provider)
