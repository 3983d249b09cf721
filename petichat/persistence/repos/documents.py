from __future__ import annotations

from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import DocumentVersion, LegalDocument, new_id
from petichat.persistence.guards import tenant_predicate


async def create_document(
    session: AsyncSession,
    *,
    tenant_id: str,
    case_id: str,
    title: str,
    document_type: str,
    sections_json: list[dict[str, Any]],
    content_html: str,
    created_by: str | None,
    status: str = "draft",
    document_id: str | None = None,
) -> LegalDocument:
    document = LegalDocument(
        id=document_id or new_id(),
        tenant_id=tenant_id,
        case_id=case_id,
        title=title,
        document_type=document_type,
        status=status,
        sections_json=sections_json,
        content_html=content_html,
        version=1,
        created_by=created_by,
    )
    session.add(document)
    await session.flush()
    return document


async def get_document(session: AsyncSession, tenant_id: str, document_id: str) -> LegalDocument | None:
    # Return None for tenant mismatch to keep 404 semantics.
    result = await session.execute(
        select(LegalDocument).where(
            LegalDocument.id == document_id, tenant_predicate(LegalDocument, tenant_id)
        )
    )
    return result.scalar_one_or_none()


async def list_documents(
    session: AsyncSession,
    tenant_id: str,
    *,
    case_id: str | None = None,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[LegalDocument], int]:
    filters = [tenant_predicate(LegalDocument, tenant_id)]
    if case_id:
        filters.append(LegalDocument.case_id == case_id)
    total = await session.scalar(select(func.count()).select_from(LegalDocument).where(*filters))
    result = await session.execute(
        select(LegalDocument)
        .where(*filters)
        .order_by(LegalDocument.created_at.desc(), LegalDocument.id)
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def delete_document(session: AsyncSession, tenant_id: str, document_id: str) -> bool:
    document = await get_document(session, tenant_id, document_id)
    if document is None:
        return False
    await session.execute(delete(DocumentVersion).where(DocumentVersion.document_id == document_id))
    await session.delete(document)
    await session.flush()
    return True


async def next_version_number(session: AsyncSession, document_id: str) -> int:
    current = await session.scalar(
        select(func.max(DocumentVersion.version_number)).where(
            DocumentVersion.document_id == document_id
        )
    )
    return int(current or 0) + 1


async def add_version(
    session: AsyncSession,
    document: LegalDocument,
    *,
    created_by: str | None,
    label: str | None = None,
) -> DocumentVersion:
    # Snapshot the document exactly as it is now; versions are append-only.
    version = DocumentVersion(
        tenant_id=document.tenant_id,
        document_id=document.id,
        version_number=await next_version_number(session, document.id),
        title=document.title,
        content_html=document.content_html,
        sections_json=list(document.sections_json or []),
        label=label,
        created_by=created_by,
    )
    session.add(version)
    await session.flush()
    return version


async def list_versions(
    session: AsyncSession,
    tenant_id: str,
    document_id: str,
    *,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[DocumentVersion], int]:
    filters = (
        DocumentVersion.document_id == document_id,
        tenant_predicate(DocumentVersion, tenant_id),
    )
    total = await session.scalar(select(func.count()).select_from(DocumentVersion).where(*filters))
    # Version numbers are monotonic per document, so they order newest-first exactly.
    result = await session.execute(
        select(DocumentVersion)
        .where(*filters)
        .order_by(DocumentVersion.version_number.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def get_version(
    session: AsyncSession, tenant_id: str, document_id: str, version_id: str
) -> DocumentVersion | None:
    result = await session.execute(
        select(DocumentVersion).where(
            DocumentVersion.id == version_id,
            DocumentVersion.document_id == document_id,
            tenant_predicate(DocumentVersion, tenant_id),
        )
    )
    return result.scalar_one_or_none()
