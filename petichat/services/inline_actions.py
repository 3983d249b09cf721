from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.config import get_settings
from petichat.core.errors import NotFoundError, StaleActionError, ValidationError
from petichat.domain.models import LegalDocument, PendingAction
from petichat.editor.inline import ACTION_INSTRUCTIONS, as_utc, check_action
from petichat.persistence.repos import cases as cases_repo
from petichat.persistence.repos import jurisprudence as jurisprudence_repo
from petichat.persistence.repos import pending_actions as actions_repo
from petichat.persistence.repos import theses as theses_repo
from petichat.providers.ai.base import AIProvider, CitationInput, RewriteContext, ThesisInput
from petichat.services.audit import record_ai_usage
from petichat.services.documents import get_document, replace_range
from petichat.services.resilience import ai_call_slot
from petichat.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def resolve_context(
    session: AsyncSession, tenant_id: str, context: RewriteContext | None
) -> RewriteContext | None:
    """Load the material behind the context ids for the provider prompt.

    Case and thesis are looked up within the tenant; jurisprudence is shared
    reference data. Any id that does not resolve is a 404.
    """
    if context is None:
        return None
    facts = None
    if context.case_id:
        case = await cases_repo.get_case(session, tenant_id, context.case_id)
        if case is None:
            raise NotFoundError("Caso não encontrado")
        facts = case.facts_description
    thesis = None
    if context.thesis_id:
        row = await theses_repo.get_thesis(session, tenant_id, context.thesis_id)
        if row is None:
            raise NotFoundError("Tese não encontrada")
        thesis = ThesisInput(category=row.category, title=row.title, content=row.content)
    wanted = list(dict.fromkeys(context.jurisprudence_ids))
    records = {record.id: record for record in await jurisprudence_repo.get_many(session, wanted)}
    if len(records) != len(wanted):
        raise NotFoundError(
            "Jurisprudência não encontrada",
            details=[{"field": "jurisprudence_ids", "missing": [jid for jid in wanted if jid not in records]}],
        )
    citations = []
    for jid in wanted:
        record = records[jid]
        citations.append(
            CitationInput(tribunal=record.tribunal, process_number=record.process_number, summary=record.summary)
        )
    return RewriteContext(
        case_id=context.case_id,
        thesis_id=context.thesis_id,
        jurisprudence_ids=wanted,
        facts=facts,
        thesis=thesis,
        citations=citations,
    )


async def request_action(
    session: AsyncSession,
    provider: AIProvider,
    *,
    tenant_id: str,
    user_id: str,
    action: str,
    text: str,
    context: RewriteContext | None = None,
    request_id: str | None = None,
    now: datetime | None = None,
) -> PendingAction:
    # The result is only proposed here; no document is touched until apply.
    check_action(action)
    if not text:
        raise ValidationError("Dados inválidos", details=[{"field": "text", "message": "text must not be empty"}])
    instruction, custom = ACTION_INSTRUCTIONS[action]
    resolved = await resolve_context(session, tenant_id, context)
    async with ai_call_slot():
        result = await provider.rewrite_text(text, instruction, custom, resolved)
    ttl_s = get_settings().inline_action_ttl_s
    row = await actions_repo.create_action(
        session,
        tenant_id=tenant_id,
        actor_id=user_id,
        action=action,
        original_text=text,
        result_text=result,
        context_json=resolved.reference_ids() if resolved else {},
        expires_at=(now or _utc_now()) + timedelta(seconds=ttl_s),
    )
    await record_ai_usage(
        session,
        tenant_id=tenant_id,
        actor_id=user_id,
        operation=f"editor.{action}",
        provider=provider.name,
        model=provider.model,
        input_chars=len(text),
        output_chars=len(result),
        resource_type="pending_action",
        resource_id=row.id,
        request_id=request_id,
    )
    await session.commit()
    logger.info("inline_action_requested action_id=%s action=%s provider=%s", row.id, action, provider.name)
    return row


async def _get_pending(session: AsyncSession, tenant_id: str, action_id: str) -> PendingAction:
    row = await actions_repo.get_action(session, tenant_id, action_id)
    if row is None:
        raise NotFoundError("Ação não encontrada")
    if row.status != "pending":
        raise StaleActionError("Ação já utilizada ou descartada; solicite novamente")
    return row


async def apply_action(
    session: AsyncSession,
    *,
    tenant_id: str,
    user_id: str,
    action_id: str,
    document_id: str,
    start: int,
    end: int,
    now: datetime | None = None,
) -> LegalDocument:
    """Splice an accepted proposal into a document at the given range.

    Expired proposals are consumed as discarded and raise; the document is
    left untouched. The write goes through the snapshot-then-overwrite path.
    """
    row = await _get_pending(session, tenant_id, action_id)
    if (now or _utc_now()) >= as_utc(row.expires_at):
        row.status = "discarded"
        await session.commit()
        logger.info("inline_action_expired action_id=%s", action_id)
        increment_counter("inline_actions_expired_total")
        raise StaleActionError("A sugestão expirou; solicite novamente")
    document = await get_document(session, tenant_id, document_id)
    await replace_range(
        session,
        document,
        user_id=user_id,
        start=start,
        end=end,
        replacement=row.result_text,
    )
    row.status = "applied"
    row.applied_document_id = document.id
    await session.commit()
    increment_counter("inline_actions_applied_total")
    await session.refresh(document)
    logger.info("inline_action_applied action_id=%s document_id=%s", action_id, document.id)
    return document


async def discard_action(session: AsyncSession, *, tenant_id: str, action_id: str) -> PendingAction:
    row = await _get_pending(session, tenant_id, action_id)
    row.status = "discarded"
    await session.commit()
    increment_counter("inline_actions_discarded_total")
    return row


async def purge_expired(session: AsyncSession, *, now: datetime | None = None) -> int:
    deleted = await actions_repo.delete_expired(session, now=now or _utc_now())
    await session.commit()
    return deleted
