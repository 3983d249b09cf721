from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from petichat.core.errors import ProviderError, ServiceBusyError, StaleActionError, ValidationError
from petichat.editor.buffer import EditorBuffer
from petichat.editor.inline import (
    InlineEditSession,
    InlineState,
    PendingAIAction,
    ProviderActionClient,
)
from petichat.providers.ai.fake import FakeAIProvider


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class _FailingClient:
    async def request(self, action, text, context) -> PendingAIAction:
        raise ProviderError("Falha ao contactar o provedor de IA")


def _session(text: str, clock: _Clock | None = None) -> InlineEditSession:
    clock = clock or _Clock()
    client = ProviderActionClient(FakeAIProvider(), ttl_s=300, clock=clock)
    return InlineEditSession(buffer=EditorBuffer(text), client=client, clock=clock)


@pytest.mark.asyncio
async def test_request_previews_without_touching_buffer() -> None:
    text = "O réu não pagou. O réu não pagou."
    session = _session(text)
    pending = await session.request("formalize", 17, 33)
    assert session.state is InlineState.PREVIEWING
    assert pending.preview is True
    assert pending.original == "O réu não pagou."
    assert session.buffer.text == text


@pytest.mark.asyncio
async def test_apply_replaces_exact_tracked_range() -> None:
    text = "O réu não pagou. O réu não pagou."
    session = _session(text)
    pending = await session.request("formalize", 17, 33)
    # Typing elsewhere before applying must not misplace the splice.
    session.buffer.insert(0, ">> ")
    result = await session.apply()
    assert result == ">> O réu não pagou. " + pending.result
    assert session.state is InlineState.IDLE
    assert session.last_outcome == "applied"


@pytest.mark.asyncio
async def test_discard_returns_to_idle_and_is_idempotent() -> None:
    session = _session("Texto do parágrafo.")
    await session.request("rewrite", 0, 19)
    await session.discard()
    assert session.state is InlineState.IDLE
    assert session.last_outcome == "discarded"
    await session.discard()
    assert session.buffer.text == "Texto do parágrafo."


@pytest.mark.asyncio
async def test_expired_preview_is_not_applied() -> None:
    clock = _Clock()
    session = _session("Texto do parágrafo.", clock)
    await session.request("expand", 0, 19)
    clock.now += timedelta(seconds=301)
    with pytest.raises(StaleActionError):
        await session.apply()
    assert session.buffer.text == "Texto do parágrafo."
    assert session.state is InlineState.IDLE
    assert session.last_outcome == "expired"


@pytest.mark.asyncio
async def test_short_selection_and_unknown_action_are_rejected() -> None:
    session = _session("ab cdef")
    with pytest.raises(ValidationError):
        await session.request("rewrite", 0, 2)
    with pytest.raises(ValidationError):
        await session.request("translate", 0, 7)
    assert session.state is InlineState.IDLE
    assert not session.can_trigger(0, 2)
    assert session.can_trigger(0, 7)


@pytest.mark.asyncio
async def test_second_request_while_previewing_is_busy() -> None:
    session = _session("Primeiro trecho. Segundo trecho.")
    await session.request("rewrite", 0, 16)
    with pytest.raises(ServiceBusyError):
        await session.request("rewrite", 17, 32)


@pytest.mark.asyncio
async def test_failed_request_leaves_no_trace() -> None:
    session = InlineEditSession(buffer=EditorBuffer("Texto original."), client=_FailingClient())
    with pytest.raises(ProviderError):
        await session.request("rewrite", 0, 15)
    assert session.state is InlineState.IDLE
    assert session.busy is False
    assert session.last_outcome == "failed"
    assert session.buffer.text == "Texto original."
    with pytest.raises(StaleActionError):
        await session.apply()


@pytest.mark.asyncio
async def test_custom_actions_use_fixed_instruction() -> None:
    session = _session("Cobrança indevida de tarifa.")
    pending = await session.request("create_claims", 0, 28)
    assert "pedidos" in pending.result
    assert session.snapshot()["pending_action_id"] == pending.action_id


@pytest.mark.asyncio
async def test_same_range_can_be_requested_again_after_discard() -> None:
    text = "O réu não pagou."
    session = _session(text)
    first = await session.request("formalize", 0, 16)
    await session.discard()
    assert session.can_trigger(0, 16)
    second = await session.request("formalize", 0, 16)
    assert second.action_id != first.action_id
    assert session.state is InlineState.PREVIEWING
    assert await session.apply() == second.result


@pytest.mark.asyncio
async def test_trigger_rule_matches_request_rule() -> None:
    session = _session("ab      cdef")
    # Four characters wide, but only two of them are text.
    assert not session.can_trigger(0, 4)
    with pytest.raises(ValidationError):
        await session.request("rewrite", 0, 4)
    assert not session.can_trigger(0, 40)
    assert session.can_trigger(8, 12)


class _RecordingClient(ProviderActionClient):
    def __init__(self, clock: _Clock, *, stale_on_apply: bool = False) -> None:
        super().__init__(FakeAIProvider(), ttl_s=300, clock=clock)
        self.stale_on_apply = stale_on_apply
        self.applied: list[tuple[str, int, int]] = []
        self.discarded: list[str] = []

    async def apply(self, pending: PendingAIAction, start: int, end: int) -> None:
        if self.stale_on_apply:
            raise StaleActionError("A sugestão expirou; solicite novamente")
        self.applied.append((pending.action_id, start, end))

    async def discard(self, pending: PendingAIAction) -> None:
        self.discarded.append(pending.action_id)


@pytest.mark.asyncio
async def test_client_is_told_the_tracked_range_on_apply_and_discard() -> None:
    clock = _Clock()
    client = _RecordingClient(clock)
    session = InlineEditSession(buffer=EditorBuffer("Primeiro. O réu não pagou."), client=client, clock=clock)
    pending = await session.request("formalize", 10, 26)
    session.buffer.insert(0, "* ")
    await session.apply()
    assert client.applied == [(pending.action_id, 12, 28)]

    other = await session.request("rewrite", 0, 11)
    await session.discard()
    assert client.discarded == [other.action_id]


@pytest.mark.asyncio
async def test_server_side_expiry_leaves_buffer_untouched() -> None:
    clock = _Clock()
    session = InlineEditSession(
        buffer=EditorBuffer("Texto do parágrafo."), client=_RecordingClient(clock, stale_on_apply=True), clock=clock
    )
    await session.request("expand", 0, 19)
    with pytest.raises(StaleActionError):
        await session.apply()
    assert session.buffer.text == "Texto do parágrafo."
    assert session.last_outcome == "expired"
    assert session.state is InlineState.IDLE
