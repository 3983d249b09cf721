from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.apps.api.deps import Principal, get_ai_provider, get_db, require_role
from petichat.apps.api.openapi import AI_ERROR_RESPONSES, DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import get_request_id, success_response
from petichat.apps.api.serializers import thesis_payload
from petichat.providers.ai.base import AIProvider
from petichat.services import theses as theses_service

router = APIRouter(tags=["theses"], responses=DEFAULT_ERROR_RESPONSES)


class SuggestRequest(BaseModel):
    document_type: str | None = None
    legal_area: str | None = None
    max_count: int = Field(default=6, ge=1, le=12)


class ThesisUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    content: str | None = Field(default=None, min_length=1)
    selected: bool | None = None
    review_status: str | None = None
    category: str | None = None


class SelectionRequest(BaseModel):
    thesis_ids: list[str] = Field(default_factory=list)


@router.post("/cases/{case_id}/theses/suggest", responses=AI_ERROR_RESPONSES)
async def suggest_theses(
    request: Request,
    case_id: str,
    payload: SuggestRequest | None = None,
    principal: Principal = Depends(require_role("editor")),
    provider: AIProvider = Depends(get_ai_provider),
    db: AsyncSession = Depends(get_db),
) -> dict:
    options = payload or SuggestRequest()
    theses = await theses_service.suggest_for_case(
        db,
        provider,
        tenant_id=principal.tenant_id,
        user_id=principal.subject_id,
        case_id=case_id,
        document_type=options.document_type,
        legal_area=options.legal_area,
        max_count=options.max_count,
        request_id=get_request_id(request),
    )
    return success_response(request=request, data={"items": [thesis_payload(t) for t in theses]})


@router.get("/cases/{case_id}/theses")
async def list_theses(
    request: Request,
    case_id: str,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    theses = await theses_service.list_for_case(db, principal.tenant_id, case_id)
    return success_response(request=request, data={"items": [thesis_payload(t) for t in theses]})


@router.put("/cases/{case_id}/theses/selection")
async def set_selection(
    request: Request,
    case_id: str,
    payload: SelectionRequest,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    theses = await theses_service.set_selection(
        db, tenant_id=principal.tenant_id, case_id=case_id, thesis_ids=set(payload.thesis_ids)
    )
    return success_response(request=request, data={"items": [thesis_payload(t) for t in theses]})


@router.patch("/theses/{thesis_id}")
async def update_thesis(
    request: Request,
    thesis_id: str,
    payload: ThesisUpdateRequest,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    thesis = await theses_service.update_thesis(
        db, principal.tenant_id, thesis_id, payload.model_dump(exclude_unset=True)
    )
    return success_response(request=request, data=thesis_payload(thesis))
