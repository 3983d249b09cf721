from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from petichat.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import SuccessEnvelope, success_response
from petichat.core.config import get_settings

router = APIRouter(tags=["health"], responses=DEFAULT_ERROR_RESPONSES)


class HealthResponse(BaseModel):
    status: str
    app: str


@router.get("/health", response_model=SuccessEnvelope[HealthResponse])
async def health(request: Request) -> dict:
    # Liveness only; no database or queue round-trip.
    payload = HealthResponse(status="ok", app=get_settings().app_name)
    return success_response(request=request, data=payload.model_dump())
