from __future__ import annotations

from typing import Any

from arq.connections import RedisSettings

from petichat.core.config import get_settings
from petichat.services.jobs.kinds import (
    GENERATE_DOCUMENT,
    WORKER_EXTRA_TRIES,
    WORKER_TIMEOUT_MARGIN_S,
    kind_config,
)
from petichat.services.jobs.runner import run_job
from petichat.workers.common import shutdown, startup


async def generate_document(ctx, payload: dict) -> dict[str, Any] | None:
    # arq counts tries from 1; the runner decides between retry and park.
    return await run_job(
        GENERATE_DOCUMENT,
        payload,
        job_id=ctx["job_id"],
        attempt=ctx.get("job_try", 1),
        providers=ctx["providers"],
    )


class WorkerSettings:
    # Keep worker configuration as class attributes for arq CLI compatibility.
    settings = get_settings()
    config = kind_config(GENERATE_DOCUMENT)
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = config.queue_name
    # One extra delivery lets the runner park a job redelivered after a worker crash.
    max_tries = config.max_tries + WORKER_EXTRA_TRIES
    # Generation is the expensive path; keep concurrency low.
    max_jobs = config.concurrency
    job_timeout = settings.job_timeout_s + WORKER_TIMEOUT_MARGIN_S
    functions = [generate_document]
    on_startup = startup
    on_shutdown = shutdown
