from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from petichat.domain.models import (
    Case,
    Citation,
    DocumentVersion,
    JobRecord,
    Jurisprudence,
    LegalDocument,
    PendingAction,
    Template,
    Thesis,
)


def _ts(value: datetime | None) -> str | None:
    # sqlite returns naive timestamps; everything stored is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def case_payload(case: Case, *, theses: list[Thesis] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": case.id,
        "owner_id": case.owner_id,
        "client_name": case.client_name,
        "case_type": case.case_type,
        "facts_description": case.facts_description,
        "status": case.status,
        "metadata": case.metadata_json or {},
        "current_step": case.current_step,
        "completed_steps": list(case.completed_steps or []),
        "created_at": _ts(case.created_at),
        "updated_at": _ts(case.updated_at),
    }
    if theses is not None:
        payload["theses"] = [thesis_payload(thesis) for thesis in theses]
    return payload


def thesis_payload(thesis: Thesis) -> dict[str, Any]:
    return {
        "id": thesis.id,
        "case_id": thesis.case_id,
        "category": thesis.category,
        "title": thesis.title,
        "content": thesis.content,
        "selected": thesis.selected,
        "order_index": thesis.order_index,
        "ai_generated": thesis.ai_generated,
        "review_status": thesis.review_status,
    }


def jurisprudence_payload(record: Jurisprudence, *, full: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": record.id,
        "tribunal": record.tribunal,
        "process_number": record.process_number,
        "decision_date": record.decision_date.isoformat() if record.decision_date else None,
        "summary": record.summary,
        "external_url": record.external_url,
    }
    if full:
        payload["full_text"] = record.full_text
        payload["source"] = record.source
    return payload


def citation_payload(citation: Citation) -> dict[str, Any]:
    return {
        "id": citation.id,
        "case_id": citation.case_id,
        "jurisprudence_id": citation.jurisprudence_id,
        "tribunal": citation.tribunal,
        "process_number": citation.process_number,
        "excerpt": citation.excerpt,
        "position": citation.position,
    }


def document_payload(document: LegalDocument, *, include_content: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": document.id,
        "case_id": document.case_id,
        "title": document.title,
        "document_type": document.document_type,
        "status": document.status,
        "version": document.version,
        "created_by": document.created_by,
        "created_at": _ts(document.created_at),
        "updated_at": _ts(document.updated_at),
    }
    if include_content:
        payload["sections"] = list(document.sections_json or [])
        payload["content_html"] = document.content_html or ""
    return payload


def version_payload(version: DocumentVersion, *, include_content: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": version.id,
        "document_id": version.document_id,
        "version_number": version.version_number,
        "title": version.title,
        "label": version.label,
        "created_by": version.created_by,
        "created_at": _ts(version.created_at),
    }
    if include_content:
        payload["sections"] = list(version.sections_json or [])
        payload["content_html"] = version.content_html
    return payload


def action_payload(action: PendingAction) -> dict[str, Any]:
    return {
        "action_id": action.id,
        "action": action.action,
        "original": action.original_text,
        "result": action.result_text,
        # Proposals are never applied without an explicit apply call.
        "preview": True,
        "status": action.status,
        "expires_at": _ts(action.expires_at),
    }


def job_payload(record: JobRecord) -> dict[str, Any]:
    return {
        "job_id": record.id,
        "kind": record.kind,
        "status": record.status,
        "progress": record.progress,
        "attempts": record.attempts,
        "max_attempts": record.max_attempts,
        "result": record.result_json,
        "error": record.error_message,
        "queued_at": _ts(record.queued_at),
        "started_at": _ts(record.started_at),
        "completed_at": _ts(record.completed_at),
        "status_url": f"/v1/jobs/{record.id}",
    }


def template_payload(template: Template) -> dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "category": template.category,
        "area": template.area,
        "rito": template.rito,
        "is_popular": template.is_popular,
        "structure": {"sections": list(template.structure_json or [])},
    }


def recent_document_payload(document: LegalDocument, client_name: str) -> dict[str, Any]:
    return {
        "id": document.id,
        "title": document.title,
        "document_type": document.document_type,
        "status": document.status,
        "client_name": client_name,
        "created_at": _ts(document.created_at),
    }
