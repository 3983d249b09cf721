from __future__ import annotations

from typing import Any

import pytest

from petichat.core.errors import ProviderError
from petichat.wizard.backends import GeneratedDraft
from petichat.wizard.session import WizardSession
from petichat.wizard.state import WizardState


class _StubBackend:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.theses: list[dict[str, Any]] = [
            {"id": "t1", "title": "Prescrição"},
            {"id": "t2", "title": "Dano moral"},
        ]
        self.fail_generate = False
        self.generated_with: dict[str, Any] = {}

    async def create_case(self, *, client_name: str, case_type: str, facts_description: str) -> str:
        self.calls.append("create_case")
        return "case-1"

    async def suggest_theses(self, case_id: str, *, document_type: str) -> list[dict[str, Any]]:
        self.calls.append("suggest_theses")
        return list(self.theses)

    async def search_jurisprudence(self, keywords, *, tribunal) -> list[dict[str, Any]]:
        self.calls.append("search_jurisprudence")
        return [{"id": "j1"}, {"id": "j2"}] if keywords else [{"id": "j3"}]

    async def generate_document(self, case_id, *, document_type, thesis_ids, jurisprudence_ids) -> GeneratedDraft:
        self.calls.append("generate_document")
        if self.fail_generate:
            raise ProviderError("Falha ao contactar o provedor de IA")
        self.generated_with = {"thesis_ids": thesis_ids, "jurisprudence_ids": jurisprudence_ids}
        return GeneratedDraft(document_id="doc-1", title="Petição Inicial - Maria", content="<p>ok</p>")


def _filled_state() -> WizardState:
    return WizardState(
        client_name="Maria Silva",
        case_type="consumer",
        facts_description="Cobrança indevida em fatura de cartão.",
    )


@pytest.mark.asyncio
async def test_step_one_requires_facts() -> None:
    session = WizardSession(_StubBackend())
    assert not session.can_advance()
    assert await session.advance() is False
    assert session.state.current_step == 1


@pytest.mark.asyncio
async def test_full_flow_creates_case_suggests_and_generates() -> None:
    backend = _StubBackend()
    session = WizardSession(backend, _filled_state())

    assert await session.advance() is True
    assert session.state.case_id == "case-1"
    assert session.state.current_step == 2
    assert [thesis["id"] for thesis in session.state.theses] == ["t1", "t2"]

    # Step 2 needs a selected thesis before moving on.
    assert await session.advance() is False
    session.toggle_thesis("t2")
    await session.load_jurisprudence("dano moral")
    session.toggle_jurisprudence("j1")

    assert await session.advance() is True
    assert session.state.current_step == 3
    assert session.state.document_id == "doc-1"
    assert backend.generated_with == {"thesis_ids": {"t2"}, "jurisprudence_ids": {"j1"}}
    assert backend.calls.count("generate_document") == 1


@pytest.mark.asyncio
async def test_retreat_and_advance_do_not_refetch() -> None:
    backend = _StubBackend()
    session = WizardSession(backend, _filled_state())
    await session.advance()
    session.toggle_thesis("t1")
    await session.advance()

    assert await session.retreat() is True
    assert await session.advance() is True
    assert backend.calls.count("suggest_theses") == 1
    assert backend.calls.count("generate_document") == 1
    assert backend.calls.count("create_case") == 1


@pytest.mark.asyncio
async def test_retreat_from_first_step_is_noop() -> None:
    session = WizardSession(_StubBackend())
    assert await session.retreat() is False


@pytest.mark.asyncio
async def test_generation_failure_sets_error_and_allows_retry() -> None:
    backend = _StubBackend()
    backend.fail_generate = True
    session = WizardSession(backend, _filled_state())
    await session.advance()
    session.toggle_thesis("t1")
    await session.advance()

    assert session.state.current_step == 3
    assert session.state.document_id is None
    assert session.state.generating is False
    assert session.state.error

    backend.fail_generate = False
    await session.generate_document()
    assert session.state.document_id == "doc-1"
    assert session.state.error is None


@pytest.mark.asyncio
async def test_resuggest_drops_stale_selection() -> None:
    backend = _StubBackend()
    session = WizardSession(backend, _filled_state())
    await session.advance()
    session.toggle_thesis("t1")
    session.toggle_thesis("t2")
    backend.theses = [{"id": "t2", "title": "Dano moral"}, {"id": "t3", "title": "Nova"}]
    await session.suggest_theses()
    assert session.state.selected_thesis_ids == {"t2"}


@pytest.mark.asyncio
async def test_new_search_keeps_selected_precedents() -> None:
    session = WizardSession(_StubBackend(), _filled_state())
    await session.load_jurisprudence("dano")
    session.toggle_jurisprudence("j2")
    await session.load_jurisprudence(None)
    assert [item["id"] for item in session.state.jurisprudences] == ["j2", "j3"]


def test_reset_returns_to_blank_state() -> None:
    session = WizardSession(_StubBackend(), _filled_state())
    session.state.current_step = 3
    session.reset()
    assert session.state.current_step == 1
    assert session.state.case_id is None


def test_toggling_a_thesis_twice_restores_the_selection() -> None:
    session = WizardSession(_StubBackend(), _filled_state())
    session.state.selected_thesis_ids = {"t2"}
    session.toggle_thesis("t1")
    assert session.state.selected_thesis_ids == {"t1", "t2"}
    session.toggle_thesis("t1")
    assert session.state.selected_thesis_ids == {"t2"}
    session.toggle_jurisprudence("j1")
    session.toggle_jurisprudence("j1")
    assert session.state.selected_jurisprudence_ids == set()


@pytest.mark.asyncio
async def test_entering_step_two_while_loading_does_not_refetch() -> None:
    backend = _StubBackend()
    state = _filled_state()
    state.case_id = "case-1"
    state.theses_loading = True
    session = WizardSession(backend, state)

    assert await session.advance() is True
    assert session.state.current_step == 2
    assert session.state.theses == []
    assert "suggest_theses" not in backend.calls


@pytest.mark.asyncio
async def test_advance_on_last_step_is_a_no_op() -> None:
    backend = _StubBackend()
    session = WizardSession(backend, _filled_state())
    await session.advance()
    session.toggle_thesis("t1")
    await session.advance()
    assert session.state.current_step == 3
    calls = list(backend.calls)

    assert session.can_advance() is False
    assert await session.advance() is False
    assert session.state.current_step == 3
    assert backend.calls == calls
