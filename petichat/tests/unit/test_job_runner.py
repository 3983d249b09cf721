from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from arq import Retry
import pytest

from petichat.core.config import get_settings
from petichat.core.errors import (
    JobError,
    NotFoundError,
    ProviderConfigError,
    ProviderError,
    ServiceBusyError,
    ValidationError,
)
from petichat.persistence.db import SessionLocal
from petichat.persistence.repos import jobs as jobs_repo
from petichat.providers.ai.registry import ProviderRegistry
from petichat.services.jobs import processors
from petichat.services.jobs.kinds import GENERATE_DOCUMENT, JOB_KINDS, kind_config
from petichat.services.jobs.queue import idempotent_job_id
from petichat.services.jobs.runner import failure_reason, is_retryable, run_job


def test_retry_classification() -> None:
    assert is_retryable(ProviderError("Falha ao contactar o provedor de IA"))
    assert is_retryable(ServiceBusyError("ocupado"))
    assert is_retryable(RuntimeError("connection reset"))
    assert is_retryable(JobError("HTTP 503"))
    assert not is_retryable(JobError("bad dataset", retryable=False))
    assert not is_retryable(ValidationError("Selecione ao menos uma tese"))
    assert not is_retryable(NotFoundError("Caso não encontrado"))
    assert not is_retryable(ProviderConfigError("OPENAI_API_KEY não configurada"))


def test_failure_reason_is_bounded() -> None:
    assert failure_reason(ValidationError("Dados inválidos")) == "ValidationError: Dados inválidos"
    assert failure_reason(RuntimeError()) == "RuntimeError: RuntimeError"
    assert len(failure_reason(RuntimeError("x" * 1000))) == 500


def test_idempotent_ids_are_scoped_by_kind_and_tenant() -> None:
    first = idempotent_job_id(GENERATE_DOCUMENT, "t1", "key-1")
    assert first == idempotent_job_id(GENERATE_DOCUMENT, "t1", "key-1")
    assert first.startswith(f"{GENERATE_DOCUMENT}-")
    assert first != idempotent_job_id(GENERATE_DOCUMENT, "t2", "key-1")
    assert first != idempotent_job_id(GENERATE_DOCUMENT, "t1", "key-2")


def test_kind_config_reads_per_kind_settings(monkeypatch) -> None:
    monkeypatch.setenv("GENERATE_DOCUMENT_MAX_TRIES", "0")
    monkeypatch.setenv("GENERATE_DOCUMENT_BACKOFF_MS", "250")
    get_settings.cache_clear()

    config = kind_config(GENERATE_DOCUMENT)
    assert config.max_tries == 1
    assert config.backoff_ms == 250
    assert {kind_config(kind).queue_name for kind in JOB_KINDS}
    with pytest.raises(ValueError):
        kind_config("send_email")


async def _queued_job(job_id: str) -> None:
    async with SessionLocal() as session:
        await jobs_repo.create_job(
            session,
            job_id=job_id,
            kind=GENERATE_DOCUMENT,
            tenant_id="t-runner",
            payload_json={},
            max_attempts=kind_config(GENERATE_DOCUMENT).max_tries,
            queued_at=datetime.now(timezone.utc),
        )
        await session.commit()


async def _stored(job_id: str):
    async with SessionLocal() as session:
        return await jobs_repo.get_job(session, job_id)


async def _slow_processor(*args, **kwargs) -> dict:
    await asyncio.sleep(5)
    return {}


@pytest.mark.asyncio
async def test_timed_out_attempt_is_retried_then_parked(monkeypatch) -> None:
    monkeypatch.setenv("JOB_TIMEOUT_S", "0.05")
    monkeypatch.setenv("GENERATE_DOCUMENT_MAX_TRIES", "2")
    get_settings.cache_clear()
    monkeypatch.setattr(processors, "run_processor", _slow_processor)
    await _queued_job("job-slow")

    with pytest.raises(Retry):
        await run_job(GENERATE_DOCUMENT, {}, job_id="job-slow", attempt=1, providers=ProviderRegistry())
    assert (await _stored("job-slow")).status == "queued"

    result = await run_job(GENERATE_DOCUMENT, {}, job_id="job-slow", attempt=2, providers=ProviderRegistry())
    record = await _stored("job-slow")
    assert result is None
    assert record.status == "failed"
    assert record.attempts == 2
    assert "job timeout" in record.error_message
    assert record.completed_at is not None


@pytest.mark.asyncio
async def test_redelivery_past_the_cap_parks_without_running(monkeypatch) -> None:
    monkeypatch.setenv("GENERATE_DOCUMENT_MAX_TRIES", "2")
    get_settings.cache_clear()
    calls: list[str] = []

    async def _tracking_processor(*args, **kwargs) -> dict:
        calls.append("run")
        return {}

    monkeypatch.setattr(processors, "run_processor", _tracking_processor)
    await _queued_job("job-redelivered")

    result = await run_job(GENERATE_DOCUMENT, {}, job_id="job-redelivered", attempt=3, providers=ProviderRegistry())
    record = await _stored("job-redelivered")
    assert result is None
    assert calls == []
    assert record.status == "failed"
    assert record.error_message == "JobError: abandoned after 2 attempts"
