from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.errors import ValidationError
from petichat.domain.content import document_type_label
from petichat.persistence.repos import metrics as metrics_repo
from petichat.services.audit import record_metric


logger = logging.getLogger(__name__)

# Emitted by the server alongside the change they count; clients cannot forge them.
SERVER_EVENT_TYPES = frozenset({"case_created", "document_created", "document_generated", "document_exported"})
# Rough drafting effort a generated document replaces.
MINUTES_SAVED_PER_DOCUMENT = 120
RECENT_DOCUMENTS_LIMIT = 5


async def track_event(
    session: AsyncSession,
    *,
    tenant_id: str,
    user_id: str | None,
    event_type: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    if event_type in SERVER_EVENT_TYPES:
        raise ValidationError(
            "Dados inválidos",
            details=[{"field": "event_type", "message": "event type is reserved for server events"}],
        )
    record_metric(session, tenant_id=tenant_id, user_id=user_id, event_type=event_type, metadata=metadata)
    await session.commit()
    logger.info("metric_tracked tenant_id=%s event_type=%s", tenant_id, event_type)


def _format_minutes(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}min"


async def build_dashboard(
    session: AsyncSession, tenant_id: str, *, now: datetime | None = None
) -> dict[str, Any]:
    """Aggregate the tenant's activity for the home dashboard.

    Document counts come from legal documents, AI usage from the audit trail
    (7-day window) and recent documents carry the case's client name.
    """
    now = now or datetime.now(timezone.utc)
    total_documents = await metrics_repo.count_documents(session, tenant_id)
    time_saved = total_documents * MINUTES_SAVED_PER_DOCUMENT
    by_type = await metrics_repo.documents_by_type(session, tenant_id)
    calls, tokens = await metrics_repo.ai_usage_since(session, tenant_id, since=now - timedelta(days=7))
    recent = await metrics_repo.recent_documents(session, tenant_id, limit=RECENT_DOCUMENTS_LIMIT)
    return {
        "overview": {
            "total_cases": await metrics_repo.count_cases(session, tenant_id),
            "total_documents": total_documents,
            "documents_last_30_days": await metrics_repo.count_documents(
                session, tenant_id, since=now - timedelta(days=30)
            ),
            "time_saved_minutes": time_saved,
            "time_saved_formatted": _format_minutes(time_saved),
        },
        "documents_by_type": [
            {"type": document_type, "label": document_type_label(document_type), "count": count}
            for document_type, count in sorted(by_type.items(), key=lambda item: (-item[1], item[0]))
        ],
        "ai_usage": {"calls_last_7_days": calls, "tokens_used": tokens},
        # (document, client_name) pairs; the route shapes them for the wire.
        "recent_documents": recent,
    }
