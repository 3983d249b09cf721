from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import ApiKey, Membership, Tenant, User


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_tenant(session: AsyncSession, *, name: str) -> Tenant:
    tenant = Tenant(name=name)
    session.add(tenant)
    await session.flush()
    return tenant


async def create_user(
    session: AsyncSession, *, tenant_id: str, email: str, name: str, role: str
) -> User:
    user = User(tenant_id=tenant_id, email=email, name=name, role=role, is_active=True)
    session.add(user)
    await session.flush()
    return user


async def create_membership(
    session: AsyncSession, *, tenant_id: str, user_id: str, role: str
) -> Membership:
    membership = Membership(tenant_id=tenant_id, user_id=user_id, role=role)
    session.add(membership)
    await session.flush()
    return membership


async def create_api_key(
    session: AsyncSession,
    *,
    key_id: str,
    user_id: str,
    tenant_id: str,
    key_prefix: str,
    key_hash: str,
    name: str | None,
) -> ApiKey:
    api_key = ApiKey(
        id=key_id,
        user_id=user_id,
        tenant_id=tenant_id,
        key_prefix=key_prefix,
        key_hash=key_hash,
        name=name,
    )
    session.add(api_key)
    await session.flush()
    return api_key


async def resolve_api_key(session: AsyncSession, key_hash: str) -> tuple[ApiKey, User] | None:
    # Only active keys owned by active users authenticate.
    result = await session.execute(
        select(ApiKey, User)
        .join(User, User.id == ApiKey.user_id)
        .where(ApiKey.key_hash == key_hash, ApiKey.revoked_at.is_(None), User.is_active.is_(True))
    )
    row = result.first()
    if row is None:
        return None
    return row[0], row[1]


async def ensure_tenant(session: AsyncSession, tenant_id: str) -> Tenant:
    # Dev bypass names tenants by header; materialize them so foreign keys hold.
    tenant = await session.get(Tenant, tenant_id)
    if tenant is None:
        tenant = Tenant(id=tenant_id, name=tenant_id)
        session.add(tenant)
        await session.flush()
    return tenant
