from __future__ import annotations

from typing import AsyncGenerator, Callable

from fastapi import Depends, Header, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.config import get_settings
from petichat.core.errors import UnauthorizedError
from petichat.domain.models import ApiKey
from petichat.persistence.db import get_session
from petichat.persistence.repos import tenants as tenants_repo
from petichat.providers.ai.base import AIProvider
from petichat.providers.ai.registry import ProviderRegistry
from petichat.services.auth.api_keys import hash_api_key, normalize_role, role_allows
from petichat.services.export import ExportCollaborator


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


class Principal(BaseModel):
    # Authenticated identity used for tenant scoping and role checks.
    subject_id: str
    tenant_id: str
    role: str
    api_key_id: str
    auth_method: str = "api_key"


def _parse_bearer_token(header_value: str | None) -> str | None:
    if not header_value:
        return None
    parts = header_value.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError("Autenticação necessária", details={"reason": "invalid bearer token"})
    return parts[1]


def idempotency_key_header(
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=128),
) -> str | None:
    return idempotency_key


async def _principal_from_dev_headers(request: Request, db: AsyncSession) -> Principal:
    # Header identities are only honored when AUTH_DEV_BYPASS is set.
    tenant_id = request.headers.get("X-Tenant-Id")
    if not tenant_id:
        raise UnauthorizedError("Autenticação necessária", details={"reason": "X-Tenant-Id header is required"})
    try:
        role = normalize_role(request.headers.get("X-Role", "admin"))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_ROLE", "message": str(exc)},
        ) from exc
    await tenants_repo.ensure_tenant(db, tenant_id)
    await db.commit()
    return Principal(
        subject_id=request.headers.get("X-User-Id") or f"dev-{tenant_id}",
        tenant_id=tenant_id,
        role=role,
        api_key_id="dev-bypass",
        auth_method="dev_bypass",
    )


async def _touch_last_used(db: AsyncSession, api_key_id: str) -> None:
    # last_used_at is informational; a failed stamp must not fail the request.
    try:
        await db.execute(update(ApiKey).where(ApiKey.id == api_key_id).values(last_used_at=func.now()))
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()


async def get_current_principal(request: Request, db: AsyncSession = Depends(get_db)) -> Principal:
    settings = get_settings()
    bearer_token = _parse_bearer_token(request.headers.get(settings.auth_api_key_header))
    if not bearer_token or not settings.auth_enabled:
        if settings.auth_dev_bypass:
            return await _principal_from_dev_headers(request, db)
        raise UnauthorizedError("Autenticação necessária", details={"reason": "missing API key"})

    row = await tenants_repo.resolve_api_key(db, hash_api_key(bearer_token))
    if row is None:
        raise UnauthorizedError("Autenticação necessária", details={"reason": "invalid or revoked API key"})
    api_key, user = row
    await _touch_last_used(db, api_key.id)
    return Principal(
        subject_id=user.id,
        tenant_id=api_key.tenant_id,
        role=user.role,
        api_key_id=api_key.id,
    )


def require_role(minimum_role: str) -> Callable[..., Principal]:
    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        # Enforce least-privilege role checks before route handlers run.
        if not role_allows(role=principal.role, minimum_role=minimum_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "FORBIDDEN", "message": "Permissão insuficiente"},
            )
        return principal

    return dependency


def get_providers(request: Request) -> ProviderRegistry:
    return request.app.state.providers


def get_ai_provider(providers: ProviderRegistry = Depends(get_providers)) -> AIProvider:
    return providers.get()


def get_exporter(request: Request) -> ExportCollaborator:
    return request.app.state.exporter
