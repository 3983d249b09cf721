from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.apps.api.deps import Principal, get_db, require_role
from petichat.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import success_response
from petichat.apps.api.serializers import template_payload
from petichat.services import templates as templates_service

router = APIRouter(prefix="/templates", tags=["templates"], responses=DEFAULT_ERROR_RESPONSES)


@router.get("")
async def list_templates(
    request: Request,
    category: str | None = Query(default=None, max_length=64),
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    templates = await templates_service.list_templates(db, category=category)
    return success_response(request=request, data={"items": [template_payload(t) for t in templates]})
