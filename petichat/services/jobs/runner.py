from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Any

from arq import Retry

from petichat.core.config import get_settings
from petichat.core.errors import (
    JobError,
    NotFoundError,
    ProviderConfigError,
    ValidationError,
)
from petichat.persistence.db import SessionLocal
from petichat.persistence.repos import jobs as jobs_repo
from petichat.providers.ai.registry import ProviderRegistry
from petichat.services.jobs import processors
from petichat.services.jobs.kinds import kind_config
from petichat.services.resilience import backoff_delay_s


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressReporter:
    """Persists job progress; values are clamped to 0..100 and never go back."""

    def __init__(self, job_id: str, *, start: int = 0) -> None:
        self.job_id = job_id
        self.value = start

    async def __call__(self, value: int) -> None:
        value = max(0, min(100, int(value)))
        if value <= self.value:
            return
        self.value = value
        async with SessionLocal() as session:
            record = await jobs_repo.get_job(session, self.job_id)
            if record is None:
                return
            # A retried attempt restarts its milestones; the stored value stays monotonic.
            record.progress = max(record.progress or 0, value)
            await session.commit()


def is_retryable(exc: Exception) -> bool:
    # Caller mistakes and missing configuration never heal on their own.
    if isinstance(exc, JobError):
        return exc.retryable
    if isinstance(exc, (ValidationError, NotFoundError, ProviderConfigError)):
        return False
    # Provider outages, saturation, database and network faults; anything unknown is capped by max_tries.
    return True


def failure_reason(exc: Exception) -> str:
    message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
    return f"{type(exc).__name__}: {message}"[:500]


async def _update_record(job_id: str, **fields: Any) -> None:
    async with SessionLocal() as session:
        record = await jobs_repo.get_job(session, job_id)
        if record is None:
            logger.warning("job_record_missing job_id=%s", job_id)
            return
        for key, value in fields.items():
            setattr(record, key, value)
        await session.commit()


async def run_job(
    kind: str,
    payload: dict[str, Any],
    *,
    job_id: str,
    attempt: int,
    providers: ProviderRegistry,
) -> dict[str, Any] | None:
    """Shared execution path for workers and inline mode.

    Transient failures raise arq ``Retry`` with exponential backoff until the
    kind's attempt cap; after that the record is parked as failed and None is
    returned so the queue does not retry forever. An attempt that outlives
    ``job_timeout_s`` is cancelled and counts as a transient failure.
    """
    config = kind_config(kind)
    if attempt > config.max_tries:
        # Redelivered after a worker died mid-attempt; the attempt budget is already spent.
        reason = f"JobError: abandoned after {config.max_tries} attempts"
        await _update_record(job_id, status="failed", error_message=reason, completed_at=_utc_now())
        logger.error("job_abandoned job_id=%s kind=%s attempt=%s", job_id, kind, attempt)
        return None
    started = {"started_at": _utc_now()} if attempt == 1 else {}
    await _update_record(job_id, status="running", attempts=attempt, **started)
    reporter = ProgressReporter(job_id)
    timeout_s = get_settings().job_timeout_s
    try:
        try:
            result = await asyncio.wait_for(
                processors.run_processor(kind, payload, job_id=job_id, providers=providers, progress=reporter),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise JobError(f"attempt exceeded job timeout of {timeout_s:g}s") from exc
    except Exception as exc:  # noqa: BLE001 - classify, then retry or park
        reason = failure_reason(exc)
        if is_retryable(exc) and attempt < config.max_tries:
            delay = backoff_delay_s(config.backoff_ms, attempt)
            await _update_record(job_id, status="queued", error_message=reason)
            logger.warning(
                "job_retry job_id=%s kind=%s attempt=%s delay_s=%.2f error=%s",
                job_id,
                kind,
                attempt,
                delay,
                type(exc).__name__,
            )
            raise Retry(defer=delay) from exc
        await _update_record(job_id, status="failed", error_message=reason, completed_at=_utc_now())
        logger.error(
            "job_failed job_id=%s kind=%s attempt=%s error=%s", job_id, kind, attempt, reason, exc_info=exc
        )
        return None

    await _update_record(
        job_id,
        status="succeeded",
        progress=100,
        result_json=result,
        error_message=None,
        completed_at=_utc_now(),
    )
    logger.info("job_completed job_id=%s kind=%s attempt=%s", job_id, kind, attempt)
    return result
