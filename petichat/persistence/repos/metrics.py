from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import AuditEvent, Case, LegalDocument, MetricsEvent
from petichat.persistence.guards import tenant_predicate


# Audit event families that carry AI usage metadata.
AI_EVENT_PREFIXES = ("ai.", "editor.")


async def count_by_event_type(session: AsyncSession, tenant_id: str) -> dict[str, int]:
    result = await session.execute(
        select(MetricsEvent.event_type, func.count())
        .where(tenant_predicate(MetricsEvent, tenant_id))
        .group_by(MetricsEvent.event_type)
    )
    return {event_type: int(count) for event_type, count in result.all()}


async def count_cases(session: AsyncSession, tenant_id: str) -> int:
    total = await session.scalar(
        select(func.count()).select_from(Case).where(tenant_predicate(Case, tenant_id))
    )
    return int(total or 0)


async def count_documents(session: AsyncSession, tenant_id: str, *, since: datetime | None = None) -> int:
    stmt = select(func.count()).select_from(LegalDocument).where(tenant_predicate(LegalDocument, tenant_id))
    if since is not None:
        stmt = stmt.where(LegalDocument.created_at >= since)
    total = await session.scalar(stmt)
    return int(total or 0)


async def documents_by_type(session: AsyncSession, tenant_id: str) -> dict[str, int]:
    result = await session.execute(
        select(LegalDocument.document_type, func.count())
        .where(tenant_predicate(LegalDocument, tenant_id))
        .group_by(LegalDocument.document_type)
    )
    return {document_type: int(count) for document_type, count in result.all()}


async def ai_usage_since(session: AsyncSession, tenant_id: str, *, since: datetime) -> tuple[int, int]:
    """Return (calls, estimated tokens) for AI-backed operations since a point in time."""
    result = await session.execute(
        select(AuditEvent.metadata_json).where(
            tenant_predicate(AuditEvent, tenant_id),
            AuditEvent.occurred_at >= since,
            AuditEvent.outcome == "success",
            or_(*(AuditEvent.event_type.like(f"{prefix}%") for prefix in AI_EVENT_PREFIXES)),
        )
    )
    calls = 0
    tokens = 0
    # Token estimates live in JSON metadata, which is summed here to stay portable across dialects.
    for metadata in result.scalars().all():
        calls += 1
        tokens += int((metadata or {}).get("estimated_tokens") or 0)
    return calls, tokens


async def recent_documents(
    session: AsyncSession, tenant_id: str, *, limit: int = 5
) -> list[tuple[LegalDocument, str]]:
    result = await session.execute(
        select(LegalDocument, Case.client_name)
        .join(Case, Case.id == LegalDocument.case_id)
        .where(tenant_predicate(LegalDocument, tenant_id))
        .order_by(LegalDocument.created_at.desc(), LegalDocument.id)
        .limit(limit)
    )
    return [(document, client_name) for document, client_name in result.all()]
