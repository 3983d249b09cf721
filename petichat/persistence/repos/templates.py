from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import Template


async def list_active(session: AsyncSession, *, category: str | None = None) -> list[Template]:
    # Popular templates first, then grouped by category for the picker.
    stmt = select(Template).where(Template.is_active.is_(True))
    if category:
        stmt = stmt.where(Template.category == category)
    result = await session.execute(
        stmt.order_by(Template.is_popular.desc(), Template.category, Template.name)
    )
    return list(result.scalars().all())


async def get_template(session: AsyncSession, template_id: str) -> Template | None:
    result = await session.execute(select(Template).where(Template.id == template_id))
    return result.scalar_one_or_none()


async def existing_names(session: AsyncSession) -> set[str]:
    result = await session.execute(select(Template.name))
    return set(result.scalars().all())


def add_template(session: AsyncSession, **fields: Any) -> Template:
    template = Template(**fields)
    session.add(template)
    return template
