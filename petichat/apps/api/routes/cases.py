from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.apps.api.deps import Principal, get_db, require_role
from petichat.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import page_response, success_response
from petichat.apps.api.serializers import case_payload, citation_payload
from petichat.persistence.repos import jurisprudence as jurisprudence_repo
from petichat.services import cases as cases_service
from petichat.services import jurisprudence as jurisprudence_service
from petichat.services import theses as theses_service

router = APIRouter(prefix="/cases", tags=["cases"], responses=DEFAULT_ERROR_RESPONSES)


class CaseCreateRequest(BaseModel):
    client_name: str = Field(min_length=2, max_length=200)
    case_type: str = Field(min_length=1, max_length=100)
    facts_description: str = Field(min_length=10)
    metadata: dict[str, Any] | None = None


class CaseUpdateRequest(BaseModel):
    client_name: str | None = Field(default=None, min_length=2, max_length=200)
    case_type: str | None = Field(default=None, min_length=1, max_length=100)
    facts_description: str | None = Field(default=None, min_length=10)
    status: str | None = None
    metadata: dict[str, Any] | None = None
    current_step: int | None = None
    completed_steps: list[int] | None = None


class CitationsRequest(BaseModel):
    jurisprudence_ids: list[str] = Field(default_factory=list, max_length=50)


@router.post("", status_code=201)
async def create_case(
    request: Request,
    payload: CaseCreateRequest,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    case = await cases_service.create_case(
        db,
        tenant_id=principal.tenant_id,
        owner_id=principal.subject_id,
        client_name=payload.client_name.strip(),
        case_type=payload.case_type.strip(),
        facts_description=payload.facts_description.strip(),
        metadata=payload.metadata,
    )
    return success_response(request=request, data=case_payload(case, theses=[]))


@router.get("")
async def list_cases(
    request: Request,
    status: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    items, total = await cases_service.list_cases(
        db, principal.tenant_id, status=status, search=search, page=page, limit=limit
    )
    return page_response(
        request=request, items=[case_payload(case) for case in items], total=total, page=page, limit=limit
    )


@router.get("/{case_id}")
async def get_case(
    request: Request,
    case_id: str,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    case = await cases_service.get_case(db, principal.tenant_id, case_id)
    theses = await theses_service.list_for_case(db, principal.tenant_id, case.id)
    return success_response(request=request, data=case_payload(case, theses=theses))


@router.patch("/{case_id}")
async def update_case(
    request: Request,
    case_id: str,
    payload: CaseUpdateRequest,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if "metadata" in changes:
        changes["metadata_json"] = changes.pop("metadata") or {}
    case = await cases_service.update_case(db, principal.tenant_id, case_id, changes)
    return success_response(request=request, data=case_payload(case))


@router.delete("/{case_id}")
async def delete_case(
    request: Request,
    case_id: str,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await cases_service.delete_case(db, principal.tenant_id, case_id)
    return success_response(request=request, data={"id": case_id, "deleted": True})


@router.get("/{case_id}/citations")
async def list_citations(
    request: Request,
    case_id: str,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await cases_service.get_case(db, principal.tenant_id, case_id)
    citations = await jurisprudence_repo.list_citations(db, principal.tenant_id, case_id)
    return success_response(request=request, data={"items": [citation_payload(c) for c in citations]})


@router.put("/{case_id}/citations")
async def set_citations(
    request: Request,
    case_id: str,
    payload: CitationsRequest,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    citations = await jurisprudence_service.set_case_citations(
        db, tenant_id=principal.tenant_id, case_id=case_id, jurisprudence_ids=payload.jurisprudence_ids
    )
    return success_response(request=request, data={"items": [citation_payload(c) for c in citations]})
