from __future__ import annotations

from petichat.providers.ai.fake import FakeAIProvider
from petichat.providers.ai.registry import ProviderRegistry


def test_registry_resolves_aliases_and_setting(monkeypatch) -> None:
    registry = ProviderRegistry()
    assert registry.resolve_name("vertex") == "gemini"
    assert registry.resolve_name("MOCK") == "fake"
    # AI_PROVIDER=fake is set for the test session.
    assert registry.resolve_name() == "fake"


def test_registry_unknown_provider_falls_back_to_fake() -> None:
    assert ProviderRegistry().resolve_name("claude-local") == "fake"


def test_registry_caches_instances() -> None:
    registry = ProviderRegistry()
    first = registry.get()
    assert isinstance(first, FakeAIProvider)
    assert registry.get() is first


def test_registry_register_pins_instance() -> None:
    registry = ProviderRegistry(default="openai")
    pinned = FakeAIProvider()
    registry.register("openai", pinned)
    assert registry.get() is pinned
