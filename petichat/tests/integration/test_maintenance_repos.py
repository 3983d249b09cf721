from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select

from petichat.domain.models import Case, JobRecord, LegalDocument, PendingAction, Tenant
from petichat.persistence.db import SessionLocal
from petichat.persistence.repos import cases as cases_repo
from petichat.persistence.repos import jobs as jobs_repo
from petichat.services.inline_actions import purge_expired


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _case(tenant_id: str, client_name: str, **extra) -> Case:
    return Case(
        tenant_id=tenant_id,
        owner_id="lawyer",
        client_name=client_name,
        case_type="civil",
        facts_description="Fatos relatados pelo cliente.",
        **extra,
    )


def _job(job_id: str, status: str, completed_at: datetime | None) -> JobRecord:
    return JobRecord(
        id=job_id,
        kind="generate_document",
        tenant_id="t-prune",
        status=status,
        payload_json={},
        max_attempts=3,
        completed_at=completed_at,
    )


@pytest.mark.asyncio
async def test_orphan_drafts_exclude_cases_with_documents() -> None:
    tenant_id = f"t-sweep-{uuid4().hex}"
    old = _utc_now() - timedelta(days=30)
    async with SessionLocal() as session:
        session.add(Tenant(id=tenant_id, name="Escritório Sweep"))
        await session.flush()
        abandoned = _case(tenant_id, "Abandonado", created_at=old)
        drafted = _case(tenant_id, "Com minuta", created_at=old)
        recent = _case(tenant_id, "Recente")
        session.add_all([abandoned, drafted, recent])
        await session.flush()
        session.add(
            LegalDocument(tenant_id=tenant_id, case_id=drafted.id, title="Rascunho", document_type="petition")
        )
        await session.commit()

        orphans = await cases_repo.list_orphan_drafts(session, created_before=_utc_now() - timedelta(days=14))
        assert [case.id for case in orphans] == [abandoned.id]


@pytest.mark.asyncio
async def test_job_retention_and_action_purge() -> None:
    now = _utc_now()
    async with SessionLocal() as session:
        session.add_all([_job(f"job-old-{index}", "succeeded", now - timedelta(days=60 - index)) for index in range(3)])
        session.add(_job("job-running", "running", None))
        session.add(_job("job-fresh", "failed", now))
        session.add(
            PendingAction(
                tenant_id="t-prune",
                actor_id="lawyer",
                action="rewrite",
                original_text="texto",
                result_text="texto melhor",
                expires_at=now - timedelta(minutes=1),
            )
        )
        await session.commit()

        trimmed = await jobs_repo.trim_terminal(session, kind="generate_document", status="succeeded", keep=1)
        assert trimmed == 2
        pruned = await jobs_repo.prune_terminal(session, completed_before=now - timedelta(days=30))
        assert pruned == 1
        await session.commit()

        remaining = set((await session.execute(select(JobRecord.id))).scalars().all())
        assert remaining == {"job-running", "job-fresh"}

        assert await purge_expired(session, now=now) == 1


@pytest.mark.asyncio
async def test_stale_running_jobs_are_parked_as_failed() -> None:
    now = _utc_now()
    async with SessionLocal() as session:
        session.add(_job("job-lost", "running", None))
        session.add(_job("job-busy", "running", None))
        await session.flush()
        (await session.get(JobRecord, "job-lost")).started_at = now - timedelta(hours=3)
        (await session.get(JobRecord, "job-busy")).started_at = now - timedelta(minutes=2)
        await session.commit()

        parked = await jobs_repo.fail_stale_running(session, started_before=now - timedelta(hours=1), now=now)
        await session.commit()
        assert parked == 1

        lost = await jobs_repo.get_job(session, "job-lost")
        busy = await jobs_repo.get_job(session, "job-busy")
        await session.refresh(lost)
        assert lost.status == "failed"
        assert "stopped reporting" in lost.error_message
        assert busy.status == "running"
