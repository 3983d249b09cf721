from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.errors import NotFoundError, ValidationError
from petichat.domain.models import Case
from petichat.persistence.repos import cases as cases_repo
from petichat.services.audit import record_metric


CASE_STATUSES = ("draft", "active", "editing", "archived")
WIZARD_STEPS = (1, 2, 3)
_UPDATABLE_FIELDS = {
    "client_name",
    "case_type",
    "facts_description",
    "status",
    "metadata_json",
    "current_step",
    "completed_steps",
}


async def create_case(
    session: AsyncSession,
    *,
    tenant_id: str,
    owner_id: str,
    client_name: str,
    case_type: str,
    facts_description: str,
    metadata: dict[str, Any] | None = None,
) -> Case:
    case = await cases_repo.create_case(
        session,
        tenant_id=tenant_id,
        owner_id=owner_id,
        client_name=client_name,
        case_type=case_type,
        facts_description=facts_description,
        metadata_json=metadata,
    )
    record_metric(
        session,
        tenant_id=tenant_id,
        user_id=owner_id,
        event_type="case_created",
        metadata={"case_id": case.id, "case_type": case_type},
    )
    await session.commit()
    return case


async def get_case(session: AsyncSession, tenant_id: str, case_id: str) -> Case:
    # Cross-tenant reads look exactly like missing rows.
    case = await cases_repo.get_case(session, tenant_id, case_id)
    if case is None:
        raise NotFoundError("Caso não encontrado")
    return case


def _validate_changes(changes: dict[str, Any]) -> None:
    unknown = set(changes) - _UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(
            "Dados inválidos",
            details=[{"field": field, "message": "field cannot be updated"} for field in sorted(unknown)],
        )
    if "status" in changes and changes["status"] not in CASE_STATUSES:
        raise ValidationError("Dados inválidos", details=[{"field": "status", "message": "invalid status"}])
    if "current_step" in changes and changes["current_step"] not in WIZARD_STEPS:
        raise ValidationError(
            "Dados inválidos", details=[{"field": "current_step", "message": "step must be 1..3"}]
        )
    if "completed_steps" in changes:
        steps = changes["completed_steps"] or []
        if any(step not in WIZARD_STEPS for step in steps):
            raise ValidationError(
                "Dados inválidos", details=[{"field": "completed_steps", "message": "steps must be 1..3"}]
            )


async def update_case(
    session: AsyncSession, tenant_id: str, case_id: str, changes: dict[str, Any]
) -> Case:
    # Partial update; editing facts never regenerates downstream suggestions.
    _validate_changes(changes)
    case = await get_case(session, tenant_id, case_id)
    for field, value in changes.items():
        if field == "completed_steps":
            value = sorted(set(value or []))
        setattr(case, field, value)
    await session.commit()
    await session.refresh(case)
    return case


def mark_step_completed(case: Case, step: int) -> None:
    # Record wizard progress on the case; caller owns the commit.
    completed = set(case.completed_steps or [])
    completed.add(step)
    case.completed_steps = sorted(completed)
    case.current_step = max(case.current_step or 1, min(step + 1, WIZARD_STEPS[-1]))


async def list_cases(
    session: AsyncSession,
    tenant_id: str,
    *,
    status: str | None,
    search: str | None,
    page: int,
    limit: int,
) -> tuple[list[Case], int]:
    return await cases_repo.list_cases(
        session,
        tenant_id,
        status=status,
        search=search,
        offset=(page - 1) * limit,
        limit=limit,
    )


async def delete_case(session: AsyncSession, tenant_id: str, case_id: str) -> None:
    deleted = await cases_repo.delete_case(session, tenant_id, case_id)
    if not deleted:
        raise NotFoundError("Caso não encontrado")
    await session.commit()
