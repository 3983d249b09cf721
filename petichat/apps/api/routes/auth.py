from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.apps.api.deps import Principal, get_current_principal, get_db
from petichat.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from petichat.apps.api.response import get_request_id, success_response
from petichat.services.signup import register

router = APIRouter(prefix="/auth", tags=["auth"], responses=DEFAULT_ERROR_RESPONSES)


class RegisterRequest(BaseModel):
    firm_name: str = Field(min_length=2, max_length=200)
    name: str = Field(min_length=2, max_length=200)
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@router.post("/register", status_code=201)
async def register_tenant(
    request: Request,
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    registration = await register(
        db,
        firm_name=payload.firm_name,
        name=payload.name,
        email=payload.email,
        request_id=get_request_id(request),
    )
    return success_response(
        request=request,
        data={
            "tenant_id": registration.tenant.id,
            "user_id": registration.user.id,
            "email": registration.user.email,
            "role": registration.user.role,
            "api_key_id": registration.api_key_id,
            # Shown exactly once.
            "api_key": registration.raw_api_key,
        },
    )


@router.get("/me")
async def me(request: Request, principal: Principal = Depends(get_current_principal)) -> dict:
    return success_response(request=request, data=principal.model_dump())
