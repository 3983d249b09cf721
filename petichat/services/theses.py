from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.errors import NotFoundError, ValidationError
from petichat.domain.models import Thesis
from petichat.persistence.repos import theses as theses_repo
from petichat.providers.ai.base import AIProvider, SuggestOptions
from petichat.services.audit import record_ai_usage
from petichat.services.cases import get_case, mark_step_completed
from petichat.services.resilience import ai_call_slot


logger = logging.getLogger(__name__)

REVIEW_STATUSES = ("pending", "approved", "rejected", "needs_revision")
THESIS_CATEGORIES = ("preliminary", "merits", "claim")


async def suggest_for_case(
    session: AsyncSession,
    provider: AIProvider,
    *,
    tenant_id: str,
    user_id: str,
    case_id: str,
    document_type: str | None = None,
    legal_area: str | None = None,
    max_count: int = 6,
    request_id: str | None = None,
) -> list[Thesis]:
    # Suggestions replace the case's previous candidates wholesale.
    case = await get_case(session, tenant_id, case_id)
    options = SuggestOptions(document_type=document_type, legal_area=legal_area, max_count=max_count)
    async with ai_call_slot():
        candidates = await provider.suggest_theses(case.facts_description, options)
    rows = await theses_repo.replace_for_case(
        session,
        tenant_id=tenant_id,
        case_id=case.id,
        candidates=[candidate.model_dump() for candidate in candidates],
    )
    mark_step_completed(case, 1)
    await record_ai_usage(
        session,
        tenant_id=tenant_id,
        actor_id=user_id,
        operation="ai.suggest_theses",
        provider=provider.name,
        model=provider.model,
        input_chars=len(case.facts_description),
        output_chars=sum(len(c.title) + len(c.content) for c in candidates),
        resource_type="case",
        resource_id=case.id,
        request_id=request_id,
    )
    await session.commit()
    logger.info("theses_suggested case_id=%s count=%s provider=%s", case.id, len(rows), provider.name)
    return rows


async def list_for_case(session: AsyncSession, tenant_id: str, case_id: str) -> list[Thesis]:
    await get_case(session, tenant_id, case_id)
    return await theses_repo.list_for_case(session, tenant_id, case_id)


async def update_thesis(
    session: AsyncSession, tenant_id: str, thesis_id: str, changes: dict[str, Any]
) -> Thesis:
    thesis = await theses_repo.get_thesis(session, tenant_id, thesis_id)
    if thesis is None:
        raise NotFoundError("Tese não encontrada")
    if "review_status" in changes and changes["review_status"] not in REVIEW_STATUSES:
        raise ValidationError(
            "Dados inválidos", details=[{"field": "review_status", "message": "invalid review status"}]
        )
    if "category" in changes and changes["category"] not in THESIS_CATEGORIES:
        raise ValidationError("Dados inválidos", details=[{"field": "category", "message": "invalid category"}])
    for field in ("title", "content", "selected", "review_status", "category"):
        if field in changes:
            setattr(thesis, field, changes[field])
    if {"title", "content"} & set(changes):
        # Hand-edited theses are no longer pure model output.
        thesis.ai_generated = False
    await session.commit()
    await session.refresh(thesis)
    return thesis


async def set_selection(
    session: AsyncSession, *, tenant_id: str, case_id: str, thesis_ids: set[str]
) -> list[Thesis]:
    await get_case(session, tenant_id, case_id)
    known = {thesis.id for thesis in await theses_repo.list_for_case(session, tenant_id, case_id)}
    unknown = thesis_ids - known
    if unknown:
        raise ValidationError(
            "Dados inválidos",
            details=[{"field": "thesis_ids", "message": f"unknown thesis: {thesis_id}"} for thesis_id in sorted(unknown)],
        )
    await theses_repo.set_selection(session, tenant_id=tenant_id, case_id=case_id, thesis_ids=thesis_ids)
    await session.commit()
    session.expire_all()
    return await theses_repo.list_for_case(session, tenant_id, case_id)
