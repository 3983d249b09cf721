from __future__ import annotations

from typing import Any

from arq.connections import RedisSettings

from petichat.core.config import get_settings
from petichat.services.jobs.kinds import (
    INGEST_JURISPRUDENCE,
    WORKER_EXTRA_TRIES,
    WORKER_TIMEOUT_MARGIN_S,
    kind_config,
)
from petichat.services.jobs.runner import run_job
from petichat.workers.common import shutdown, startup


async def ingest_jurisprudence(ctx, payload: dict) -> dict[str, Any] | None:
    return await run_job(
        INGEST_JURISPRUDENCE,
        payload,
        job_id=ctx["job_id"],
        attempt=ctx.get("job_try", 1),
        providers=ctx["providers"],
    )


class WorkerSettings:
    settings = get_settings()
    config = kind_config(INGEST_JURISPRUDENCE)
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = config.queue_name
    # One extra delivery lets the runner park a job redelivered after a worker crash.
    max_tries = config.max_tries + WORKER_EXTRA_TRIES
    # Serial ingestion avoids two jobs racing on the same source records.
    max_jobs = config.concurrency
    job_timeout = settings.job_timeout_s + WORKER_TIMEOUT_MARGIN_S
    functions = [ingest_jurisprudence]
    on_startup = startup
    on_shutdown = shutdown
