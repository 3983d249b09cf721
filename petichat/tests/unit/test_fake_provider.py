from __future__ import annotations

import pytest

from petichat.core.errors import ValidationError
from petichat.providers.ai.base import CitationInput, GenerationContext, SuggestOptions, ThesisInput
from petichat.providers.ai.fake import FakeAIProvider


@pytest.mark.asyncio
async def test_fake_suggest_respects_max_count() -> None:
    provider = FakeAIProvider()
    theses = await provider.suggest_theses("fatos do caso", SuggestOptions(max_count=2))
    assert len(theses) == 2
    assert {thesis.category for thesis in theses} <= {"preliminary", "merits", "claim"}


@pytest.mark.asyncio
async def test_fake_generate_includes_selected_theses_and_citations() -> None:
    provider = FakeAIProvider()
    context = GenerationContext(
        facts="O autor foi cobrado indevidamente.",
        document_type="petition",
        theses=[ThesisInput(category="merits", title="Dano Moral", content="Houve dano moral.")],
        citations=[CitationInput(tribunal="STJ", process_number="REsp 1", summary="Dano in re ipsa.")],
        client_name="Maria Silva",
    )
    document = await provider.generate_document(context)
    assert document.title == "Petição Inicial - Maria Silva"
    assert [section.type for section in document.sections] == [
        "qualification",
        "facts",
        "law",
        "jurisprudence",
        "claims",
    ]
    assert "Dano Moral" in document.flat_content
    assert "REsp 1" in document.flat_content


@pytest.mark.asyncio
async def test_fake_generate_omits_law_section_without_theses() -> None:
    provider = FakeAIProvider()
    document = await provider.generate_document(GenerationContext(facts="fatos", document_type="motion"))
    assert "law" not in [section.type for section in document.sections]


@pytest.mark.asyncio
async def test_fake_rewrite_custom_requires_instruction_text() -> None:
    provider = FakeAIProvider()
    with pytest.raises(ValidationError):
        await provider.rewrite_text("texto qualquer", "custom")
    result = await provider.rewrite_text("texto qualquer", "custom", "Use tom formal")
    assert result.endswith("[Use tom formal]")


@pytest.mark.asyncio
async def test_fake_rewrite_rejects_unknown_instruction() -> None:
    provider = FakeAIProvider()
    with pytest.raises(ValidationError):
        await provider.rewrite_text("texto", "translate")
