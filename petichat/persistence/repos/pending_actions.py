from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import PendingAction
from petichat.persistence.guards import tenant_predicate


async def create_action(
    session: AsyncSession,
    *,
    tenant_id: str,
    actor_id: str,
    action: str,
    original_text: str,
    result_text: str,
    context_json: dict[str, Any],
    expires_at: datetime,
) -> PendingAction:
    row = PendingAction(
        tenant_id=tenant_id,
        actor_id=actor_id,
        action=action,
        original_text=original_text,
        result_text=result_text,
        context_json=context_json,
        status="pending",
        expires_at=expires_at,
    )
    session.add(row)
    await session.flush()
    return row


async def get_action(session: AsyncSession, tenant_id: str, action_id: str) -> PendingAction | None:
    # Return None for tenant mismatch to keep 404 semantics.
    result = await session.execute(
        select(PendingAction).where(
            PendingAction.id == action_id, tenant_predicate(PendingAction, tenant_id)
        )
    )
    return result.scalar_one_or_none()


async def delete_expired(session: AsyncSession, *, now: datetime) -> int:
    # Expired proposals are dead weight once past their window.
    result = await session.execute(delete(PendingAction).where(PendingAction.expires_at < now))
    return int(result.rowcount or 0)
