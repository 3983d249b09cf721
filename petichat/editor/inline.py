from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Any, Callable, Protocol
from uuid import uuid4

from petichat.core.config import get_settings
from petichat.core.errors import ServiceBusyError, StaleActionError, ValidationError
from petichat.editor.buffer import EditorBuffer, SelectionHandle
from petichat.providers.ai.base import AIProvider, RewriteContext


logger = logging.getLogger(__name__)

INLINE_ACTIONS = ("rewrite", "expand", "shorten", "formalize", "cite", "create_topic", "create_claims")

# Each editor action maps onto one provider rewrite instruction.
ACTION_INSTRUCTIONS: dict[str, tuple[str, str | None]] = {
    "rewrite": ("improve", None),
    "expand": ("expand", None),
    "shorten": ("simplify", None),
    "formalize": ("formalize", None),
    "cite": (
        "custom",
        "Acrescente ao texto uma citação de jurisprudência pertinente dos tribunais superiores",
    ),
    "create_topic": (
        "custom",
        "Transforme o texto em um tópico de petição com título em caixa alta e fundamentação",
    ),
    "create_claims": (
        "custom",
        "Converta o texto em uma lista de pedidos enumerados (a, b, c) no padrão forense",
    ),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes; treat them as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_action(action: str) -> None:
    if action not in INLINE_ACTIONS:
        raise ValidationError(
            "Ação inválida", details=[{"field": "action", "message": f"use one of {', '.join(INLINE_ACTIONS)}"}]
        )


class InlineState(str, Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    PREVIEWING = "previewing"


@dataclass(frozen=True)
class PendingAIAction:
    action_id: str
    action: str
    original: str
    result: str
    expires_at: datetime
    # Results are always shown before they can touch the document.
    preview: bool = True

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _utc_now()) >= as_utc(self.expires_at)


class InlineActionClient(Protocol):
    async def request(self, action: str, text: str, context: RewriteContext | None) -> PendingAIAction:
        ...

    async def apply(self, pending: PendingAIAction, start: int, end: int) -> None:
        ...

    async def discard(self, pending: PendingAIAction) -> None:
        ...


class ProviderActionClient:
    """Runs inline actions straight against an AI provider (no server round-trip)."""

    def __init__(self, provider: AIProvider, *, ttl_s: int = 300, clock: Callable[[], datetime] = _utc_now) -> None:
        self._provider = provider
        self._ttl = timedelta(seconds=ttl_s)
        self._clock = clock

    async def request(self, action: str, text: str, context: RewriteContext | None) -> PendingAIAction:
        check_action(action)
        instruction, custom = ACTION_INSTRUCTIONS[action]
        result = await self._provider.rewrite_text(text, instruction, custom, context)
        return PendingAIAction(
            action_id=uuid4().hex,
            action=action,
            original=text,
            result=result,
            expires_at=self._clock() + self._ttl,
        )

    async def apply(self, pending: PendingAIAction, start: int, end: int) -> None:
        # Nothing is persisted for local proposals.
        return None

    async def discard(self, pending: PendingAIAction) -> None:
        return None


@dataclass
class _Preview:
    pending: PendingAIAction
    handle: SelectionHandle


@dataclass
class InlineEditSession:
    """Select, request, preview, then apply or discard; always back to idle.

    The buffer is never modified between ``request`` and an explicit
    ``apply``. Apply splices the tracked range, not a text search, and the
    client is told about the outcome so a server-held proposal is consumed
    or discarded along with the local one.
    """

    buffer: EditorBuffer
    client: InlineActionClient
    min_selection_chars: int = field(default_factory=lambda: get_settings().inline_min_selection_chars)
    clock: Callable[[], datetime] = _utc_now
    state: InlineState = InlineState.IDLE
    busy: bool = False
    last_outcome: str | None = None
    _preview: _Preview | None = field(default=None, repr=False)

    @property
    def pending(self) -> PendingAIAction | None:
        return self._preview.pending if self._preview else None

    def _long_enough(self, start: int, end: int) -> bool:
        # Whitespace does not count towards the minimum selection.
        if start < 0 or end < start or end > len(self.buffer):
            return False
        return len(self.buffer.text[start:end].strip()) >= self.min_selection_chars

    def can_trigger(self, start: int, end: int) -> bool:
        return self.state is InlineState.IDLE and not self.busy and self._long_enough(start, end)

    async def request(
        self, action: str, start: int, end: int, context: RewriteContext | None = None
    ) -> PendingAIAction:
        check_action(action)
        if self.busy or self.state is not InlineState.IDLE:
            raise ServiceBusyError("Já existe uma ação de IA em andamento")
        text = self.buffer.slice(start, end)
        if not self._long_enough(start, end):
            raise ValidationError(
                "Seleção muito curta",
                details=[{"field": "selection", "message": f"minimum {self.min_selection_chars} characters"}],
            )
        handle = self.buffer.track(start, end)
        self.state = InlineState.REQUESTED
        self.busy = True
        try:
            pending = await self.client.request(action, text, context)
        except Exception:
            # Failed requests leave no trace in the buffer.
            self.buffer.release(handle)
            self.state = InlineState.IDLE
            self.last_outcome = "failed"
            raise
        finally:
            self.busy = False
        self._preview = _Preview(pending=pending, handle=handle)
        self.state = InlineState.PREVIEWING
        return pending

    def _clear(self, outcome: str) -> None:
        if self._preview is not None:
            self.buffer.release(self._preview.handle)
        self._preview = None
        self.state = InlineState.IDLE
        self.last_outcome = outcome

    async def apply(self) -> str:
        if self._preview is None:
            raise StaleActionError("Nenhuma ação pendente para aplicar")
        preview = self._preview
        if preview.pending.is_expired(self.clock()):
            self._clear("expired")
            raise StaleActionError("A sugestão expirou; solicite novamente")
        if preview.handle.touched:
            logger.info("inline_apply_touched_range action_id=%s", preview.pending.action_id)
        try:
            await self.client.apply(preview.pending, preview.handle.start, preview.handle.end)
        except StaleActionError:
            self._clear("expired")
            raise
        self.buffer.replace_handle(preview.handle, preview.pending.result)
        self._clear("applied")
        return self.buffer.text

    async def discard(self) -> None:
        # Dismissal with nothing pending is a no-op.
        if self._preview is None:
            return
        pending = self._preview.pending
        try:
            await self.client.discard(pending)
        except StaleActionError:
            logger.info("inline_discard_already_closed action_id=%s", pending.action_id)
        self._clear("discarded")

    def snapshot(self) -> dict[str, Any]:
        pending = self.pending
        return {
            "state": self.state.value,
            "busy": self.busy,
            "pending_action_id": pending.action_id if pending else None,
            "last_outcome": self.last_outcome,
        }
