from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.apps.api.deps import Principal, get_db, require_role
from petichat.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import page_response, success_response
from petichat.apps.api.serializers import jurisprudence_payload
from petichat.persistence.repos import jurisprudence as jurisprudence_repo
from petichat.services import jurisprudence as jurisprudence_service

router = APIRouter(prefix="/jurisprudence", tags=["jurisprudence"], responses=DEFAULT_ERROR_RESPONSES)


@router.get("")
async def search_jurisprudence(
    request: Request,
    keywords: str | None = Query(default=None, max_length=200),
    tribunal: str | None = Query(default=None, max_length=20),
    year: int | None = Query(default=None, ge=1900, le=2100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    items, total = await jurisprudence_service.search(
        db, keywords=keywords, tribunal=tribunal, year=year, page=page, limit=limit
    )
    return page_response(
        request=request,
        items=[jurisprudence_payload(item) for item in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/tribunals")
async def list_tribunals(
    request: Request,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return success_response(request=request, data={"items": await jurisprudence_repo.list_tribunals(db)})


@router.get("/{jurisprudence_id}")
async def get_jurisprudence(
    request: Request,
    jurisprudence_id: str,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    record = await jurisprudence_service.get_jurisprudence(db, jurisprudence_id)
    return success_response(request=request, data=jurisprudence_payload(record, full=True))
