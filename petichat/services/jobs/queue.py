from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import hashlib
import logging
from typing import Literal
from uuid import uuid4

from arq import Retry, create_pool
from arq.connections import RedisSettings
from pydantic import BaseModel, Field
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.config import get_settings
from petichat.domain.models import JobRecord
from petichat.persistence.repos import jobs as jobs_repo
from petichat.providers.ai.registry import ProviderRegistry
from petichat.services.jobs import runner
from petichat.services.jobs.kinds import (
    GENERATE_DOCUMENT,
    GENERATE_EMBEDDINGS,
    INGEST_JURISPRUDENCE,
    kind_config,
)


logger = logging.getLogger(__name__)

_redis_pool = None
_redis_pool_loop = None
_redis_lock = asyncio.Lock()


class GenerateDocumentPayload(BaseModel):
    # API-to-worker handoff for background drafting.
    tenant_id: str
    user_id: str | None = None
    case_id: str
    document_type: str = "petition"
    # Regenerate into an existing document instead of the job-derived one.
    document_id: str | None = None
    format: Literal["pdf", "docx", "txt"] | None = None
    include_jurisprudence: bool = True
    request_id: str | None = None


class IngestJurisprudencePayload(BaseModel):
    source: str
    dataset_url: str | None = None
    tenant_id: str | None = None
    request_id: str | None = None


class GenerateEmbeddingsPayload(BaseModel):
    chunk_ids: list[str] = Field(default_factory=list)
    request_id: str | None = None


PAYLOAD_MODELS: dict[str, type[BaseModel]] = {
    GENERATE_DOCUMENT: GenerateDocumentPayload,
    INGEST_JURISPRUDENCE: IngestJurisprudencePayload,
    GENERATE_EMBEDDINGS: GenerateEmbeddingsPayload,
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def idempotent_job_id(kind: str, tenant_id: str | None, key: str) -> str:
    # Same caller key within a tenant always names the same job.
    digest = hashlib.sha256(f"{kind}:{tenant_id or '-'}:{key}".encode("utf-8")).hexdigest()
    return f"{kind}-{digest[:24]}"


async def get_redis_pool():
    # Cache the Redis pool to avoid reconnecting on every enqueue.
    global _redis_pool, _redis_pool_loop
    current_loop = asyncio.get_running_loop()
    if _redis_pool is not None and _redis_pool_loop != current_loop:
        # Drop loop-bound pools to avoid cross-loop errors in tests.
        _redis_pool = None
    async with _redis_lock:
        if _redis_pool is None:
            settings = get_settings()
            _redis_pool = await create_pool(RedisSettings.from_dsn(settings.redis_url))
            _redis_pool_loop = current_loop
    return _redis_pool


async def get_queue_depths() -> dict[str, int | None]:
    # None marks a queue whose depth could not be read.
    settings = get_settings()
    depths: dict[str, int | None] = {}
    for kind in PAYLOAD_MODELS:
        if settings.job_execution_mode.lower() == "inline":
            depths[kind] = 0
            continue
        try:
            redis = await get_redis_pool()
            depths[kind] = int(await redis.zcard(kind_config(kind).queue_name))
        except (RedisError, OSError) as exc:
            logger.warning("queue_depth_unavailable kind=%s error=%s", kind, type(exc).__name__)
            depths[kind] = None
    return depths


async def enqueue_job(
    session: AsyncSession,
    kind: str,
    payload: BaseModel,
    *,
    tenant_id: str | None,
    idempotency_key: str | None = None,
    job_id: str | None = None,
    providers: ProviderRegistry | None = None,
) -> JobRecord:
    """Record a job and hand it to its queue (or run it now in inline mode).

    Enqueueing twice with the same idempotency key returns the first job's
    record without scheduling anything new.
    """
    config = kind_config(kind)
    if job_id is None:
        job_id = idempotent_job_id(kind, tenant_id, idempotency_key) if idempotency_key else uuid4().hex
    existing = await jobs_repo.get_job(session, job_id)
    if existing is not None:
        logger.info("job_enqueue_deduplicated job_id=%s kind=%s", job_id, kind)
        return existing

    payload_json = payload.model_dump(mode="json")
    record = await jobs_repo.create_job(
        session,
        job_id=job_id,
        kind=kind,
        tenant_id=tenant_id,
        payload_json=payload_json,
        max_attempts=config.max_tries,
        queued_at=_utc_now(),
    )
    await session.commit()

    settings = get_settings()
    if settings.job_execution_mode.lower() == "inline":
        await _run_inline_job(kind, payload_json, job_id=job_id, providers=providers or ProviderRegistry())
        await session.refresh(record)
        return record

    redis = await get_redis_pool()
    await redis.enqueue_job(kind, payload_json, _job_id=job_id, _queue_name=config.queue_name)
    logger.info("job_enqueued job_id=%s kind=%s queue=%s", job_id, kind, config.queue_name)
    return record


async def _run_inline_job(kind: str, payload: dict, *, job_id: str, providers: ProviderRegistry) -> None:
    # Inline mode mimics worker retries without requiring Redis.
    attempt = 1
    while True:
        try:
            await runner.run_job(kind, payload, job_id=job_id, attempt=attempt, providers=providers)
            return
        except Retry:
            attempt += 1
