from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import Case, Citation, DocumentVersion, LegalDocument, Thesis
from petichat.persistence.guards import tenant_predicate


async def create_case(
    session: AsyncSession,
    *,
    tenant_id: str,
    owner_id: str,
    client_name: str,
    case_type: str,
    facts_description: str,
    metadata_json: dict[str, Any] | None = None,
) -> Case:
    # New cases always start as drafts at wizard step 1.
    case = Case(
        tenant_id=tenant_id,
        owner_id=owner_id,
        client_name=client_name,
        case_type=case_type,
        facts_description=facts_description,
        status="draft",
        metadata_json=metadata_json or {},
        current_step=1,
        completed_steps=[],
    )
    session.add(case)
    await session.flush()
    return case


async def get_case(session: AsyncSession, tenant_id: str, case_id: str) -> Case | None:
    # Return None for tenant mismatch to keep 404 semantics.
    result = await session.execute(
        select(Case).where(Case.id == case_id, tenant_predicate(Case, tenant_id))
    )
    return result.scalar_one_or_none()


async def list_cases(
    session: AsyncSession,
    tenant_id: str,
    *,
    status: str | None = None,
    search: str | None = None,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[Case], int]:
    filters = [tenant_predicate(Case, tenant_id)]
    if status:
        filters.append(Case.status == status)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(Case.client_name.ilike(pattern), Case.facts_description.ilike(pattern)))
    total = await session.scalar(select(func.count()).select_from(Case).where(*filters))
    result = await session.execute(
        select(Case)
        .where(*filters)
        .order_by(Case.created_at.desc(), Case.id)
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def delete_case(session: AsyncSession, tenant_id: str, case_id: str) -> bool:
    # Remove children explicitly; sqlite does not enforce FK cascades by default.
    case = await get_case(session, tenant_id, case_id)
    if case is None:
        return False
    document_ids = select(LegalDocument.id).where(LegalDocument.case_id == case_id)
    await session.execute(delete(DocumentVersion).where(DocumentVersion.document_id.in_(document_ids)))
    await session.execute(delete(LegalDocument).where(LegalDocument.case_id == case_id))
    await session.execute(delete(Citation).where(Citation.case_id == case_id))
    await session.execute(delete(Thesis).where(Thesis.case_id == case_id))
    await session.delete(case)
    await session.flush()
    return True


async def list_orphan_drafts(session: AsyncSession, *, created_before: datetime) -> list[Case]:
    # Draft cases with no documents are leftovers of abandoned wizard sessions.
    has_document = select(LegalDocument.id).where(LegalDocument.case_id == Case.id).exists()
    result = await session.execute(
        select(Case)
        .where(Case.status == "draft", Case.created_at < created_before, ~has_document)
        .order_by(Case.created_at)
    )
    return list(result.scalars().all())
