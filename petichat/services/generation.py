from __future__ import annotations

import logging
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.errors import NotFoundError, ValidationError
from petichat.domain.content import document_type_label, sections_to_json
from petichat.domain.models import Case, LegalDocument
from petichat.persistence.repos import documents as documents_repo
from petichat.persistence.repos import jurisprudence as jurisprudence_repo
from petichat.persistence.repos import theses as theses_repo
from petichat.providers.ai.base import AIProvider, CitationInput, GenerationContext, ThesisInput
from petichat.services.audit import record_ai_usage, record_metric
from petichat.services.cases import get_case, mark_step_completed
from petichat.services.documents import check_document_type, apply_content_update


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Awaitable[None]]


async def build_context(
    session: AsyncSession,
    *,
    tenant_id: str,
    case: Case,
    document_type: str,
    include_jurisprudence: bool = True,
) -> GenerationContext:
    # Only selected theses feed generation; citations come in their stored order.
    theses = await theses_repo.list_for_case(session, tenant_id, case.id, selected_only=True)
    citations = (
        await jurisprudence_repo.list_citations(session, tenant_id, case.id) if include_jurisprudence else []
    )
    return GenerationContext(
        facts=case.facts_description,
        document_type=document_type,
        theses=[ThesisInput(category=t.category, title=t.title, content=t.content) for t in theses],
        citations=[
            CitationInput(tribunal=c.tribunal, process_number=c.process_number, summary=c.excerpt)
            for c in citations
        ],
        client_name=case.client_name,
        case_type=case.case_type,
    )


async def generate_for_case(
    session: AsyncSession,
    provider: AIProvider,
    *,
    tenant_id: str,
    user_id: str | None,
    case_id: str,
    document_type: str = "petition",
    title: str | None = None,
    document_id: str | None = None,
    create_with_id: bool = False,
    include_jurisprudence: bool = True,
    require_selection: bool = True,
    request_id: str | None = None,
    progress: ProgressCallback | None = None,
) -> LegalDocument:
    """Draft a document for a case and persist it with its version history.

    With ``document_id`` unset a new document plus its initial version is
    created atomically. With ``document_id`` set, it must name a document of
    the same tenant and case; the new draft goes through snapshot-then-overwrite,
    so re-running for the same target appends a version instead of touching
    older ones. Only internal callers pass ``create_with_id`` to create the
    document under that id when it does not exist yet.
    """
    check_document_type(document_type)
    case = await get_case(session, tenant_id, case_id)
    existing = await documents_repo.get_document(session, tenant_id, document_id) if document_id else None
    if existing is not None and existing.case_id != case.id:
        existing = None
        create_with_id = False
    if document_id and existing is None and not create_with_id:
        # Foreign, unknown and other-case ids all look the same to the caller.
        raise NotFoundError("Documento não encontrado")
    context = await build_context(
        session,
        tenant_id=tenant_id,
        case=case,
        document_type=document_type,
        include_jurisprudence=include_jurisprudence,
    )
    if require_selection and not context.theses:
        raise ValidationError(
            "Selecione ao menos uma tese", details=[{"field": "theses", "message": "no selected thesis"}]
        )
    if progress is not None:
        await progress(10)

    generated = await provider.generate_document(context)
    if progress is not None:
        await progress(50)

    resolved_title = title or generated.title or f"{document_type_label(document_type)} - {case.client_name}"
    if existing is not None:
        existing.title = resolved_title
        existing.document_type = document_type
        await apply_content_update(
            session, existing, user_id=user_id, sections=generated.sections, label="regenerated"
        )
        document = existing
    else:
        document = await documents_repo.create_document(
            session,
            tenant_id=tenant_id,
            case_id=case.id,
            title=resolved_title,
            document_type=document_type,
            sections_json=sections_to_json(generated.sections),
            content_html=generated.flat_content,
            created_by=user_id,
            document_id=document_id,
        )
        await documents_repo.add_version(session, document, created_by=user_id, label="initial")

    mark_step_completed(case, 2)
    mark_step_completed(case, 3)
    if case.status == "draft":
        case.status = "active"
    record_metric(
        session,
        tenant_id=tenant_id,
        user_id=user_id,
        event_type="document_generated",
        metadata={"document_id": document.id, "case_id": case.id, "document_type": document_type},
    )
    await record_ai_usage(
        session,
        tenant_id=tenant_id,
        actor_id=user_id,
        operation="ai.generate_document",
        provider=provider.name,
        model=provider.model,
        input_chars=len(context.facts) + sum(len(t.content) for t in context.theses),
        output_chars=len(generated.flat_content),
        resource_type="document",
        resource_id=document.id,
        request_id=request_id,
    )
    await session.commit()
    await session.refresh(document)
    if progress is not None:
        await progress(90)
    logger.info(
        "document_generated document_id=%s case_id=%s provider=%s sections=%s",
        document.id,
        case.id,
        provider.name,
        len(generated.sections),
    )
    return document
