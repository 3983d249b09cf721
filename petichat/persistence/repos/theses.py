from __future__ import annotations

from typing import Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import Thesis
from petichat.persistence.guards import tenant_predicate


async def list_for_case(
    session: AsyncSession, tenant_id: str, case_id: str, *, selected_only: bool = False
) -> list[Thesis]:
    # Order index defines presentation and insertion order.
    stmt = select(Thesis).where(Thesis.case_id == case_id, tenant_predicate(Thesis, tenant_id))
    if selected_only:
        stmt = stmt.where(Thesis.selected.is_(True))
    result = await session.execute(stmt.order_by(Thesis.order_index))
    return list(result.scalars().all())


async def get_thesis(session: AsyncSession, tenant_id: str, thesis_id: str) -> Thesis | None:
    result = await session.execute(
        select(Thesis).where(Thesis.id == thesis_id, tenant_predicate(Thesis, tenant_id))
    )
    return result.scalar_one_or_none()


async def replace_for_case(
    session: AsyncSession,
    *,
    tenant_id: str,
    case_id: str,
    candidates: Iterable[dict[str, str]],
) -> list[Thesis]:
    # Delete-then-insert keeps order_index dense and unique per case.
    await session.execute(
        delete(Thesis).where(Thesis.case_id == case_id, tenant_predicate(Thesis, tenant_id))
    )
    rows: list[Thesis] = []
    for index, candidate in enumerate(candidates):
        thesis = Thesis(
            tenant_id=tenant_id,
            case_id=case_id,
            category=candidate["category"],
            title=candidate["title"],
            content=candidate["content"],
            selected=False,
            order_index=index,
            ai_generated=True,
            review_status="pending",
        )
        session.add(thesis)
        rows.append(thesis)
    await session.flush()
    return rows


async def set_selection(
    session: AsyncSession, *, tenant_id: str, case_id: str, thesis_ids: set[str]
) -> None:
    # Apply the full selection set in two statements so partial selections never persist.
    scope = (Thesis.case_id == case_id, tenant_predicate(Thesis, tenant_id))
    await session.execute(update(Thesis).where(*scope).values(selected=False))
    if thesis_ids:
        await session.execute(
            update(Thesis).where(*scope, Thesis.id.in_(sorted(thesis_ids))).values(selected=True)
        )
