from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.errors import ConflictError
from petichat.domain.models import Tenant, User
from petichat.persistence.repos import tenants as tenants_repo
from petichat.services.audit import record_event
from petichat.services.auth.api_keys import generate_api_key


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Registration:
    tenant: Tenant
    user: User
    api_key_id: str
    # Returned once; only the hash is persisted.
    raw_api_key: str


async def register(
    session: AsyncSession,
    *,
    firm_name: str,
    name: str,
    email: str,
    request_id: str | None = None,
) -> Registration:
    """Create tenant, owner, membership and first API key in one transaction.

    Any failure rolls the whole registration back, so no tenant is left
    without an owner.
    """
    normalized_email = email.strip().lower()
    if await tenants_repo.get_user_by_email(session, normalized_email) is not None:
        raise ConflictError("E-mail já cadastrado", details={"field": "email"})
    try:
        tenant = await tenants_repo.create_tenant(session, name=firm_name.strip())
        user = await tenants_repo.create_user(
            session, tenant_id=tenant.id, email=normalized_email, name=name.strip(), role="admin"
        )
        await tenants_repo.create_membership(session, tenant_id=tenant.id, user_id=user.id, role="admin")
        key_id, raw_key, key_prefix, key_hash = generate_api_key()
        await tenants_repo.create_api_key(
            session,
            key_id=key_id,
            user_id=user.id,
            tenant_id=tenant.id,
            key_prefix=key_prefix,
            key_hash=key_hash,
            name="default",
        )
        await record_event(
            session=session,
            tenant_id=tenant.id,
            actor_type="user",
            actor_id=user.id,
            event_type="auth.register",
            outcome="success",
            resource_type="tenant",
            resource_id=tenant.id,
            request_id=request_id,
            metadata={"key_prefix": key_prefix},
        )
        await session.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same e-mail.
        await session.rollback()
        raise ConflictError("E-mail já cadastrado", details={"field": "email"}) from exc
    except Exception:
        await session.rollback()
        raise
    logger.info("tenant_registered tenant_id=%s user_id=%s", tenant.id, user.id)
    return Registration(tenant=tenant, user=user, api_key_id=key_id, raw_api_key=raw_key)
