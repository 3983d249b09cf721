from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from petichat.core.config import get_settings
from petichat.persistence.db import SessionLocal
from petichat.persistence.repos import jobs as jobs_repo
from petichat.services.inline_actions import purge_expired
from petichat.services.jobs.kinds import JOB_KINDS, kind_config


async def prune() -> None:
    # Keep job history bounded by age and by per-kind retention counts.
    settings = get_settings()
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(days=settings.job_retention_days)
    async with SessionLocal() as session:
        # Park abandoned runs first so they age out with the other failures.
        stale = await jobs_repo.fail_stale_running(
            session, started_before=now - timedelta(seconds=settings.job_stale_running_s), now=now
        )
        aged = await jobs_repo.prune_terminal(session, completed_before=cutoff)
        trimmed = 0
        for kind in JOB_KINDS:
            config = kind_config(kind)
            trimmed += await jobs_repo.trim_terminal(
                session, kind=kind, status="succeeded", keep=config.keep_completed
            )
            trimmed += await jobs_repo.trim_terminal(session, kind=kind, status="failed", keep=config.keep_failed)
        await session.commit()
        expired_actions = await purge_expired(session)
    print(f"failed_stale_jobs={stale}")
    print(f"pruned_job_records={aged + trimmed}")
    print(f"pruned_pending_actions={expired_actions}")


if __name__ == "__main__":
    asyncio.run(prune())
