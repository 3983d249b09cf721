from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.apps.api.deps import Principal, get_ai_provider, get_db, require_role
from petichat.apps.api.openapi import AI_ERROR_RESPONSES, DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import get_request_id, success_response
from petichat.apps.api.serializers import action_payload, document_payload
from petichat.providers.ai.base import AIProvider, RewriteContext
from petichat.services import inline_actions

router = APIRouter(prefix="/editor", tags=["editor"], responses=DEFAULT_ERROR_RESPONSES)


class ActionContext(BaseModel):
    # Ids only; the server loads what they point to.
    case_id: str | None = None
    thesis_id: str | None = None
    jurisprudence_ids: list[str] = Field(default_factory=list, max_length=20)


class ActionRequest(BaseModel):
    action: str
    text: str = Field(min_length=1, max_length=20000)
    context: ActionContext | None = None


class Position(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: int = Field(alias="from", ge=0)
    end: int = Field(alias="to", ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "Position":
        if self.end < self.start:
            raise ValueError("'to' must not precede 'from'")
        return self


class ApplyRequest(BaseModel):
    document_id: str
    position: Position


@router.post("/actions", responses=AI_ERROR_RESPONSES)
async def request_action(
    request: Request,
    payload: ActionRequest,
    principal: Principal = Depends(require_role("editor")),
    provider: AIProvider = Depends(get_ai_provider),
    db: AsyncSession = Depends(get_db),
) -> dict:
    action = await inline_actions.request_action(
        db,
        provider,
        tenant_id=principal.tenant_id,
        user_id=principal.subject_id,
        action=payload.action,
        text=payload.text,
        context=RewriteContext(**payload.context.model_dump()) if payload.context else None,
        request_id=get_request_id(request),
    )
    return success_response(request=request, data=action_payload(action))


@router.post("/actions/{action_id}/apply", responses={410: {"description": "Proposal expired or already used"}})
async def apply_action(
    request: Request,
    action_id: str,
    payload: ApplyRequest,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    document = await inline_actions.apply_action(
        db,
        tenant_id=principal.tenant_id,
        user_id=principal.subject_id,
        action_id=action_id,
        document_id=payload.document_id,
        start=payload.position.start,
        end=payload.position.end,
    )
    return success_response(request=request, data=document_payload(document))


@router.post("/actions/{action_id}/discard", responses={410: {"description": "Proposal already used"}})
async def discard_action(
    request: Request,
    action_id: str,
    principal: Principal = Depends(require_role("editor")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    action = await inline_actions.discard_action(db, tenant_id=principal.tenant_id, action_id=action_id)
    return success_response(request=request, data=action_payload(action))
