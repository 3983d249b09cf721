from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.apps.api.deps import Principal, get_db, require_role
from petichat.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import success_response
from petichat.apps.api.serializers import recent_document_payload
from petichat.persistence.repos import metrics as metrics_repo
from petichat.services import metrics as metrics_service
from petichat.services import telemetry
from petichat.services.jobs.queue import get_queue_depths

router = APIRouter(prefix="/metrics", tags=["metrics"], responses=DEFAULT_ERROR_RESPONSES)

_WINDOW_S = 300


class TrackRequest(BaseModel):
    event_type: str = Field(min_length=1, max_length=64, pattern=r"^[a-z][a-z0-9_.]*$")
    metadata: dict[str, Any] = Field(default_factory=dict)


@router.get("/summary")
async def metrics_summary(
    request: Request,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    counts = await metrics_repo.count_by_event_type(db, principal.tenant_id)
    return success_response(
        request=request,
        data={
            "counts_by_event_type": counts,
            "total_cases": await metrics_repo.count_cases(db, principal.tenant_id),
            "total_documents": await metrics_repo.count_documents(db, principal.tenant_id),
        },
    )


@router.get("/dashboard")
async def metrics_dashboard(
    request: Request,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    data = await metrics_service.build_dashboard(db, principal.tenant_id)
    data["recent_documents"] = [
        recent_document_payload(document, client_name) for document, client_name in data["recent_documents"]
    ]
    return success_response(request=request, data=data)


@router.post("/track", status_code=201)
async def track_event(
    request: Request,
    payload: TrackRequest,
    principal: Principal = Depends(require_role("reader")),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await metrics_service.track_event(
        db,
        tenant_id=principal.tenant_id,
        user_id=principal.subject_id,
        event_type=payload.event_type,
        metadata=payload.metadata,
    )
    return success_response(request=request, data={"tracked": True, "event_type": payload.event_type})


@router.get("/process")
async def process_metrics(
    request: Request,
    principal: Principal = Depends(require_role("admin")),
) -> dict:
    # Process-wide figures span every tenant served by this instance.
    return success_response(
        request=request,
        data={
            "window_s": _WINDOW_S,
            "p95_latency_ms": telemetry.p95_latency(_WINDOW_S, path_prefix="/v1"),
            "external_calls": telemetry.external_call_stats(_WINDOW_S),
            "counters": telemetry.counters_snapshot(),
            "queue_depths": await get_queue_depths(),
        },
    )
