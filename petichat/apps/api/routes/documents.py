from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.apps.api.deps import Principal, get_ai_provider, get_db, get_exporter, require_role
from petichat.apps.api.openapi import AI_ERROR_RESPONSES, DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import get_request_id, page_response, success_response
from petichat.apps.api.serializers import document_payload, version_payload
from petichat.providers.ai.base import AIProvider
from petichat.services import documents as documents_service
from petichat.services.export import ExportCollaborator
from petichat.services.generation import generate_for_case
from petichat.services.resilience import ai_call_slot

router = APIRouter(prefix="/documents", tags=["documents"], responses=DEFAULT_ERROR_RESPONSES)


class GenerateRequest(BaseModel):
    case_id: str
    document_type: str = "petition"
    title: str | None = Field(default=None, max_length=300)
    # Regenerate into an existing document; its history keeps the previous draft.
    document_id: str | None = None
    include_jurisprudence: bool = True


class DocumentCreateRequest(BaseModel):
    case_id: str
    title: str = Field(min_length=1, max_length=300)
    document_type: str = "petition"


class DocumentUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    status: str | None = None
    content_html: str | None = None
    sections: list[dict[str, Any]] | None = None
    # Optimistic concurrency; omitted means last write wins.
    expected_version: int | None = Field(default=None, ge=0)


class VersionCreateRequest(BaseModel):
    label: str | None = Field(default=None, max_length=100)


class ExportRequest(BaseModel):
    format: Literal["pdf", "docx", "txt"]


@router.post("/generate", status_code=201, responses=AI_ERROR_RESPONSES)
async def generate_document(
    request: Request,
    payload: GenerateRequest,
    principal: Principal = Depends(require_role("editor")),
    provider: AIProvider = Depends(get_ai_provider),
    db: AsyncSession = Depends(get_db),
) -> dict:
    async with ai_call_slot():
        document = await generate_for_case(
            db,
            provider,
            tenant_id=principal.tenant_id,
            user_id=principal.subject_id,
            case_id=payload.case_id,
            document_type=payload.document_type,
            title=payload.title,
            document_id=payload.document_id,
            include_jurisprudence=payload.include_jurisprudence,
            request_id=get_request_id(request),
        )
    return success_response(request=request, data=document_payload(document))


@router.post("", status_code=201)
async def create_document(
    request: Request,
    payload: DocumentCreateRequest,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    document = await documents_service.create_document(
        db,
        tenant_id=principal.tenant_id,
        user_id=principal.subject_id,
        case_id=payload.case_id,
        title=payload.title,
        document_type=payload.document_type,
    )
    return success_response(request=request, data=document_payload(document))


@router.get("")
async def list_documents(
    request: Request,
    case_id: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    items, total = await documents_service.list_documents(
        db, principal.tenant_id, case_id=case_id, page=page, limit=limit
    )
    return page_response(
        request=request,
        items=[document_payload(document, include_content=False) for document in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{document_id}")
async def get_document(
    request: Request,
    document_id: str,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    document = await documents_service.get_document(db, principal.tenant_id, document_id)
    return success_response(request=request, data=document_payload(document))


@router.patch("/{document_id}")
async def update_document(
    request: Request,
    document_id: str,
    payload: DocumentUpdateRequest,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    changes = payload.model_dump(exclude_unset=True, exclude={"expected_version"})
    document = await documents_service.update_document(
        db,
        tenant_id=principal.tenant_id,
        user_id=principal.subject_id,
        document_id=document_id,
        changes=changes,
        expected_version=payload.expected_version,
    )
    return success_response(request=request, data=document_payload(document))


@router.delete("/{document_id}")
async def delete_document(
    request: Request,
    document_id: str,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await documents_service.delete_document(db, principal.tenant_id, document_id)
    return success_response(request=request, data={"id": document_id, "deleted": True})


@router.post("/{document_id}/versions", status_code=201)
async def create_version(
    request: Request,
    document_id: str,
    payload: VersionCreateRequest | None = None,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    version = await documents_service.create_version(
        db,
        tenant_id=principal.tenant_id,
        user_id=principal.subject_id,
        document_id=document_id,
        label=payload.label if payload else None,
    )
    return success_response(request=request, data=version_payload(version))


@router.get("/{document_id}/versions")
async def list_versions(
    request: Request,
    document_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    items, total = await documents_service.list_versions(
        db, tenant_id=principal.tenant_id, document_id=document_id, page=page, limit=limit
    )
    return page_response(
        request=request,
        items=[version_payload(version, include_content=False) for version in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{document_id}/versions/{version_id}")
async def get_version(
    request: Request,
    document_id: str,
    version_id: str,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    version = await documents_service.get_version(
        db, tenant_id=principal.tenant_id, document_id=document_id, version_id=version_id
    )
    return success_response(request=request, data=version_payload(version))


@router.post("/{document_id}/export")
async def export_document(
    request: Request,
    document_id: str,
    payload: ExportRequest,
    principal: Principal = Depends(require_role("reader")),
    exporter: ExportCollaborator = Depends(get_exporter),
    db: AsyncSession = Depends(get_db),
) -> dict:
    artifact = await documents_service.export_document(
        db,
        exporter,
        tenant_id=principal.tenant_id,
        user_id=principal.subject_id,
        document_id=document_id,
        fmt=payload.format,
    )
    return success_response(
        request=request,
        data={
            "file_name": artifact.file_name,
            "download_url": artifact.download_url,
            "content_type": artifact.content_type,
            "size_bytes": artifact.size_bytes,
        },
    )
