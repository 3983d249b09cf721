from __future__ import annotations

from typing import Any

from arq.connections import RedisSettings

from petichat.core.config import get_settings
from petichat.services.jobs.kinds import (
    GENERATE_EMBEDDINGS,
    WORKER_EXTRA_TRIES,
    WORKER_TIMEOUT_MARGIN_S,
    kind_config,
)
from petichat.services.jobs.runner import run_job
from petichat.workers.common import shutdown, startup


async def generate_embeddings(ctx, payload: dict) -> dict[str, Any] | None:
    return await run_job(
        GENERATE_EMBEDDINGS,
        payload,
        job_id=ctx["job_id"],
        attempt=ctx.get("job_try", 1),
        providers=ctx["providers"],
    )


class WorkerSettings:
    settings = get_settings()
    config = kind_config(GENERATE_EMBEDDINGS)
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = config.queue_name
    # One extra delivery lets the runner park a job redelivered after a worker crash.
    max_tries = config.max_tries + WORKER_EXTRA_TRIES
    # Chunks are independent, so embeddings run wider than the other kinds.
    max_jobs = config.concurrency
    job_timeout = settings.job_timeout_s + WORKER_TIMEOUT_MARGIN_S
    functions = [generate_embeddings]
    on_startup = startup
    on_shutdown = shutdown
