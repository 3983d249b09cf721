from __future__ import annotations

from datetime import datetime

from petichat.editor.inline import PendingAIAction, check_action
from petichat.providers.ai.base import RewriteContext
from petichat.sdk.client import PetichatClient


class ApiActionClient:
    """Inline action client backed by the server; the proposal is persisted there.

    Bound to one document: the editor buffer it serves must hold that
    document's content so applied ranges line up on both sides.
    """

    def __init__(self, client: PetichatClient, *, document_id: str) -> None:
        self._client = client
        self.document_id = document_id

    async def request(self, action: str, text: str, context: RewriteContext | None) -> PendingAIAction:
        check_action(action)
        data = await self._client.request_action(action, text, context.reference_ids() if context else None)
        return PendingAIAction(
            action_id=data["action_id"],
            action=data["action"],
            original=data["original"],
            result=data["result"],
            expires_at=datetime.fromisoformat(data["expires_at"]),
            preview=bool(data.get("preview", True)),
        )

    async def apply(self, pending: PendingAIAction, start: int, end: int) -> None:
        await self._client.apply_action(pending.action_id, document_id=self.document_id, start=start, end=end)

    async def discard(self, pending: PendingAIAction) -> None:
        await self._client.discard_action(pending.action_id)
