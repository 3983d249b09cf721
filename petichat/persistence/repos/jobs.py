from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import JobRecord


TERMINAL_STATUSES = ("succeeded", "failed")


async def create_job(
    session: AsyncSession,
    *,
    job_id: str,
    kind: str,
    tenant_id: str | None,
    payload_json: dict[str, Any],
    max_attempts: int,
    queued_at: datetime,
) -> JobRecord:
    record = JobRecord(
        id=job_id,
        kind=kind,
        tenant_id=tenant_id,
        status="queued",
        progress=0,
        attempts=0,
        max_attempts=max_attempts,
        payload_json=payload_json,
        queued_at=queued_at,
    )
    session.add(record)
    await session.flush()
    return record


async def get_job(session: AsyncSession, job_id: str) -> JobRecord | None:
    # Use with care; tenant checks belong to callers on the interactive path.
    return await session.get(JobRecord, job_id)


async def get_job_for_tenant(session: AsyncSession, tenant_id: str, job_id: str) -> JobRecord | None:
    result = await session.execute(
        select(JobRecord).where(JobRecord.id == job_id, JobRecord.tenant_id == tenant_id)
    )
    return result.scalar_one_or_none()


async def prune_terminal(session: AsyncSession, *, completed_before: datetime) -> int:
    # Only finished jobs are pruned; queued and running rows stay visible.
    result = await session.execute(
        delete(JobRecord).where(
            JobRecord.status.in_(TERMINAL_STATUSES),
            JobRecord.completed_at < completed_before,
        )
    )
    return int(result.rowcount or 0)


async def trim_terminal(session: AsyncSession, *, kind: str, status: str, keep: int) -> int:
    # Keep only the newest `keep` finished records of one kind and status.
    stale_ids = (
        select(JobRecord.id)
        .where(JobRecord.kind == kind, JobRecord.status == status)
        .order_by(JobRecord.completed_at.desc(), JobRecord.id.desc())
        .offset(max(keep, 0))
    )
    ids = list((await session.execute(stale_ids)).scalars().all())
    if not ids:
        return 0
    result = await session.execute(delete(JobRecord).where(JobRecord.id.in_(ids)))
    return int(result.rowcount or 0)


async def fail_stale_running(session: AsyncSession, *, started_before: datetime, now: datetime) -> int:
    # Records whose worker vanished without reporting back.
    result = await session.execute(
        update(JobRecord)
        .where(JobRecord.status == "running", JobRecord.started_at < started_before)
        .values(status="failed", error_message="JobError: worker stopped reporting", completed_at=now)
    )
    return int(result.rowcount or 0)
