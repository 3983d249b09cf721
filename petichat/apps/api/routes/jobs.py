from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.apps.api.deps import Principal, get_db, get_providers, idempotency_key_header, require_role
from petichat.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import get_request_id, success_response
from petichat.apps.api.serializers import job_payload
from petichat.core.errors import NotFoundError
from petichat.persistence.repos import jobs as jobs_repo
from petichat.providers.ai.registry import ProviderRegistry
from petichat.services import cases as cases_service
from petichat.services import documents as documents_service
from petichat.services.jobs import queue as job_queue
from petichat.services.jobs.kinds import GENERATE_DOCUMENT, INGEST_JURISPRUDENCE

router = APIRouter(prefix="/jobs", tags=["jobs"], responses=DEFAULT_ERROR_RESPONSES)


class GenerateDocumentJobRequest(BaseModel):
    case_id: str
    document_type: str = "petition"
    document_id: str | None = None
    format: Literal["pdf", "docx", "txt"] | None = None
    include_jurisprudence: bool = True


class IngestJurisprudenceJobRequest(BaseModel):
    source: str = "sample"
    dataset_url: str | None = None


@router.post("/generate-document", status_code=202)
async def enqueue_generate_document(
    request: Request,
    payload: GenerateDocumentJobRequest,
    principal: Principal = Depends(require_role("editor")),
    idempotency_key: str | None = Depends(idempotency_key_header),
    providers: ProviderRegistry = Depends(get_providers),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Fail fast on bad input instead of burning a job attempt on it.
    documents_service.check_document_type(payload.document_type)
    await cases_service.get_case(db, principal.tenant_id, payload.case_id)
    job_payload_model = job_queue.GenerateDocumentPayload(
        tenant_id=principal.tenant_id,
        user_id=principal.subject_id,
        case_id=payload.case_id,
        document_type=payload.document_type,
        document_id=payload.document_id,
        format=payload.format,
        include_jurisprudence=payload.include_jurisprudence,
        request_id=get_request_id(request),
    )
    record = await job_queue.enqueue_job(
        db,
        GENERATE_DOCUMENT,
        job_payload_model,
        tenant_id=principal.tenant_id,
        idempotency_key=idempotency_key,
        providers=providers,
    )
    return success_response(request=request, data=job_payload(record))


@router.post("/ingest-jurisprudence", status_code=202)
async def enqueue_ingest_jurisprudence(
    request: Request,
    payload: IngestJurisprudenceJobRequest,
    principal: Principal = Depends(require_role("admin")),
    idempotency_key: str | None = Depends(idempotency_key_header),
    providers: ProviderRegistry = Depends(get_providers),
    db: AsyncSession = Depends(get_db),
) -> dict:
    record = await job_queue.enqueue_job(
        db,
        INGEST_JURISPRUDENCE,
        job_queue.IngestJurisprudencePayload(
            source=payload.source,
            dataset_url=payload.dataset_url,
            tenant_id=principal.tenant_id,
            request_id=get_request_id(request),
        ),
        tenant_id=principal.tenant_id,
        idempotency_key=idempotency_key,
        providers=providers,
    )
    return success_response(request=request, data=job_payload(record))


@router.get("/{job_id}")
async def get_job(
    request: Request,
    job_id: str,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    record = await jobs_repo.get_job_for_tenant(db, principal.tenant_id, job_id)
    if record is None:
        raise NotFoundError("Job não encontrado")
    return success_response(request=request, data=job_payload(record))
