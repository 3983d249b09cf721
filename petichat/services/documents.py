from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.errors import ConflictError, NotFoundError, ValidationError
from petichat.domain.content import DOCUMENT_TYPES, Section, order_sections, render_sections, sections_to_json
from petichat.domain.models import DocumentVersion, LegalDocument
from petichat.persistence.repos import documents as documents_repo
from petichat.services.audit import record_metric
from petichat.services.cases import get_case
from petichat.services.export import ExportArtifact, ExportCollaborator, EXPORT_FORMATS


logger = logging.getLogger(__name__)

DOCUMENT_STATUSES = ("draft", "completed")


def check_document_type(document_type: str) -> None:
    if document_type not in DOCUMENT_TYPES:
        raise ValidationError(
            "Dados inválidos", details=[{"field": "document_type", "message": "invalid document type"}]
        )


async def get_document(session: AsyncSession, tenant_id: str, document_id: str) -> LegalDocument:
    document = await documents_repo.get_document(session, tenant_id, document_id)
    if document is None:
        raise NotFoundError("Documento não encontrado")
    return document


async def create_document(
    session: AsyncSession,
    *,
    tenant_id: str,
    user_id: str,
    case_id: str,
    title: str,
    document_type: str,
) -> LegalDocument:
    # Empty shell bound to a case; content arrives later from the editor or generation.
    check_document_type(document_type)
    case = await get_case(session, tenant_id, case_id)
    document = await documents_repo.create_document(
        session,
        tenant_id=tenant_id,
        case_id=case.id,
        title=title,
        document_type=document_type,
        sections_json=[],
        content_html="",
        created_by=user_id,
    )
    record_metric(
        session,
        tenant_id=tenant_id,
        user_id=user_id,
        event_type="document_created",
        metadata={"document_id": document.id, "document_type": document_type},
    )
    await session.commit()
    return document


def write_content(
    document: LegalDocument,
    *,
    content_html: str | None,
    sections: list[Section] | None,
) -> None:
    # Structured sections win; bare markup from the editor leaves sections as last generated.
    if sections is not None:
        ordered = order_sections(sections)
        document.sections_json = sections_to_json(ordered)
        document.content_html = render_sections(ordered)
    elif content_html is not None:
        document.content_html = content_html
    document.version = (document.version or 0) + 1


async def apply_content_update(
    session: AsyncSession,
    document: LegalDocument,
    *,
    user_id: str | None,
    content_html: str | None = None,
    sections: list[Section] | None = None,
    expected_version: int | None = None,
    label: str | None = None,
) -> DocumentVersion | None:
    """Snapshot-then-overwrite; the single write path for document content.

    Interactive edits, inline applies and background regeneration all come
    through here so version history is never bypassed. Returns the snapshot
    taken, or None when the previous content was empty. Caller commits.
    """
    if expected_version is not None and expected_version != document.version:
        raise ConflictError(
            "Documento alterado por outra sessão",
            details={"expected_version": expected_version, "current_version": document.version},
        )
    snapshot = None
    if document.content_html:
        snapshot = await documents_repo.add_version(session, document, created_by=user_id, label=label)
    write_content(document, content_html=content_html, sections=sections)
    return snapshot


async def update_document(
    session: AsyncSession,
    *,
    tenant_id: str,
    user_id: str,
    document_id: str,
    changes: dict[str, Any],
    expected_version: int | None = None,
) -> LegalDocument:
    document = await get_document(session, tenant_id, document_id)
    if expected_version is not None and expected_version != document.version:
        raise ConflictError(
            "Documento alterado por outra sessão",
            details={"expected_version": expected_version, "current_version": document.version},
        )
    if "status" in changes and changes["status"] not in DOCUMENT_STATUSES:
        raise ValidationError("Dados inválidos", details=[{"field": "status", "message": "invalid status"}])
    if "title" in changes:
        document.title = changes["title"]
    if "status" in changes:
        document.status = changes["status"]
    content_html = changes.get("content_html")
    raw_sections = changes.get("sections")
    if content_html is not None or raw_sections is not None:
        sections = [Section.model_validate(item) for item in raw_sections] if raw_sections is not None else None
        await apply_content_update(
            session,
            document,
            user_id=user_id,
            content_html=content_html,
            sections=sections,
        )
    await session.commit()
    await session.refresh(document)
    return document


async def replace_range(
    session: AsyncSession,
    document: LegalDocument,
    *,
    user_id: str | None,
    start: int,
    end: int,
    replacement: str,
) -> DocumentVersion | None:
    # Positional splice of the stored markup; caller commits.
    content = document.content_html or ""
    if start < 0 or end < start or end > len(content):
        raise ValidationError(
            "Dados inválidos",
            details=[{"field": "position", "message": f"range {start}..{end} outside content of length {len(content)}"}],
        )
    spliced = content[:start] + replacement + content[end:]
    return await apply_content_update(session, document, user_id=user_id, content_html=spliced)


async def create_version(
    session: AsyncSession,
    *,
    tenant_id: str,
    user_id: str,
    document_id: str,
    label: str | None = None,
) -> DocumentVersion:
    # Explicit save point independent of any content write.
    document = await get_document(session, tenant_id, document_id)
    version = await documents_repo.add_version(session, document, created_by=user_id, label=label)
    await session.commit()
    return version


async def list_versions(
    session: AsyncSession, *, tenant_id: str, document_id: str, page: int, limit: int
) -> tuple[list[DocumentVersion], int]:
    await get_document(session, tenant_id, document_id)
    return await documents_repo.list_versions(
        session, tenant_id, document_id, offset=(page - 1) * limit, limit=limit
    )


async def get_version(
    session: AsyncSession, *, tenant_id: str, document_id: str, version_id: str
) -> DocumentVersion:
    version = await documents_repo.get_version(session, tenant_id, document_id, version_id)
    if version is None:
        raise NotFoundError("Versão não encontrada")
    return version


async def list_documents(
    session: AsyncSession, tenant_id: str, *, case_id: str | None, page: int, limit: int
) -> tuple[list[LegalDocument], int]:
    return await documents_repo.list_documents(
        session, tenant_id, case_id=case_id, offset=(page - 1) * limit, limit=limit
    )


async def delete_document(session: AsyncSession, tenant_id: str, document_id: str) -> None:
    deleted = await documents_repo.delete_document(session, tenant_id, document_id)
    if not deleted:
        raise NotFoundError("Documento não encontrado")
    await session.commit()


async def export_document(
    session: AsyncSession,
    exporter: ExportCollaborator,
    *,
    tenant_id: str,
    user_id: str,
    document_id: str,
    fmt: str,
) -> ExportArtifact:
    if fmt not in EXPORT_FORMATS:
        raise ValidationError("Dados inválidos", details=[{"field": "format", "message": "use pdf, docx or txt"}])
    document = await get_document(session, tenant_id, document_id)
    artifact = await exporter.export(document, fmt)
    record_metric(
        session,
        tenant_id=tenant_id,
        user_id=user_id,
        event_type="document_exported",
        metadata={"document_id": document.id, "format": fmt},
    )
    await session.commit()
    logger.info("document_exported document_id=%s format=%s file=%s", document.id, fmt, artifact.file_name)
    return artifact
