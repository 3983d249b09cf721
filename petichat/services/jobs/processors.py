from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Awaitable, Callable

from petichat.core.errors import JobError
from petichat.ingestion.chunking import chunk_jurisprudence
from petichat.ingestion.embeddings import Embedder, HashingEmbedder
from petichat.persistence.db import SessionLocal
from petichat.persistence.repos import jurisprudence as jurisprudence_repo
from petichat.providers.ai.registry import ProviderRegistry
from petichat.services import documents as documents_service
from petichat.services import jurisprudence as jurisprudence_service
from petichat.services.export import ExportCollaborator, LocalFileExporter
from petichat.services.generation import generate_for_case
from petichat.services.jobs import queue as job_queue
from petichat.services.jobs.kinds import GENERATE_DOCUMENT, GENERATE_EMBEDDINGS, INGEST_JURISPRUDENCE


logger = logging.getLogger(__name__)

Progress = Callable[[int], Awaitable[None]]

# Chunks per embeddings job fanned out by ingestion.
EMBEDDING_BATCH_SIZE = 100


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_exporter() -> ExportCollaborator:
    return LocalFileExporter()


def get_embedder() -> Embedder:
    return HashingEmbedder()


def document_id_for_job(job_id: str) -> str:
    # Every attempt of a job writes the same document, so retries append versions.
    return f"doc-{job_id}"


async def process_generate_document(
    payload: job_queue.GenerateDocumentPayload,
    *,
    job_id: str,
    providers: ProviderRegistry,
    progress: Progress,
) -> dict[str, Any]:
    provider = providers.get()
    async with SessionLocal() as session:
        document = await generate_for_case(
            session,
            provider,
            tenant_id=payload.tenant_id,
            user_id=payload.user_id,
            case_id=payload.case_id,
            document_type=payload.document_type,
            document_id=payload.document_id or document_id_for_job(job_id),
            create_with_id=payload.document_id is None,
            include_jurisprudence=payload.include_jurisprudence,
            request_id=payload.request_id,
            progress=progress,
        )
        result: dict[str, Any] = {"document_id": document.id, "version": document.version, "export": None}
        if payload.format:
            artifact = await documents_service.export_document(
                session,
                get_exporter(),
                tenant_id=payload.tenant_id,
                user_id=payload.user_id,
                document_id=document.id,
                fmt=payload.format,
            )
            result["export"] = {"file_name": artifact.file_name, "download_url": artifact.download_url}
    return result


async def process_ingest_jurisprudence(
    payload: job_queue.IngestJurisprudencePayload,
    *,
    job_id: str,
    providers: ProviderRegistry,
    progress: Progress,
) -> dict[str, Any]:
    """Fetch, normalize, dedupe and insert a dataset, then fan out embeddings.

    Dedup is by (tribunal, process number) against the table and within the
    batch, so ingesting the same source again inserts nothing.
    """
    await progress(10)
    raw_records = await jurisprudence_service.fetch_dataset(payload.source, payload.dataset_url)
    await progress(30)

    error_count = 0
    batch: dict[tuple[str, str], jurisprudence_service.NormalizedJurisprudence] = {}
    skipped_count = 0
    for raw in raw_records:
        try:
            record = jurisprudence_service.normalize_record(raw)
        except ValueError as exc:
            error_count += 1
            logger.info("jurisprudence_record_rejected job_id=%s reason=%s", job_id, exc)
            continue
        if record.key in batch:
            skipped_count += 1
            continue
        batch[record.key] = record

    async with SessionLocal() as session:
        existing = await jurisprudence_repo.existing_keys(session, batch.keys())
        skipped_count += len(existing)
        fresh = [record for key, record in batch.items() if key not in existing]
        await progress(60)

        for record in fresh:
            row = await jurisprudence_repo.insert_jurisprudence(
                session,
                tribunal=record.tribunal,
                process_number=record.process_number,
                decision_date=record.decision_date,
                summary=record.summary,
                full_text=record.full_text,
                external_url=record.external_url,
                source=payload.source,
            )
            await jurisprudence_repo.add_chunks(session, row.id, chunk_jurisprudence(record.summary, record.full_text))
        await session.commit()
        await progress(90)

        # Covers chunks left unembedded by an earlier attempt that died after commit.
        chunk_ids = await jurisprudence_repo.unembedded_chunk_ids(session, batch.keys())
        embedding_job_ids: list[str] = []
        for index in range(0, len(chunk_ids), EMBEDDING_BATCH_SIZE):
            record = await job_queue.enqueue_job(
                session,
                GENERATE_EMBEDDINGS,
                job_queue.GenerateEmbeddingsPayload(
                    chunk_ids=chunk_ids[index : index + EMBEDDING_BATCH_SIZE], request_id=payload.request_id
                ),
                tenant_id=payload.tenant_id,
                job_id=f"{job_id}-emb-{index // EMBEDDING_BATCH_SIZE}",
                providers=providers,
            )
            embedding_job_ids.append(record.id)

    logger.info(
        "jurisprudence_ingested job_id=%s source=%s ingested=%s skipped=%s errors=%s",
        job_id,
        payload.source,
        len(fresh),
        skipped_count,
        error_count,
    )
    return {
        "ingested_count": len(fresh),
        "skipped_count": skipped_count,
        "error_count": error_count,
        "embedding_job_ids": embedding_job_ids,
    }


async def process_generate_embeddings(
    payload: job_queue.GenerateEmbeddingsPayload,
    *,
    job_id: str,
    providers: ProviderRegistry,
    progress: Progress,
) -> dict[str, Any]:
    # One bad chunk is counted, never allowed to fail the batch.
    embedder = get_embedder()
    total = len(payload.chunk_ids)
    processed = 0
    failed = 0
    async with SessionLocal() as session:
        for position, chunk_id in enumerate(payload.chunk_ids, start=1):
            chunk = await jurisprudence_repo.get_chunk(session, chunk_id)
            if chunk is None:
                failed += 1
                logger.warning("embedding_chunk_missing job_id=%s chunk_id=%s", job_id, chunk_id)
            else:
                try:
                    vector = embedder.embed(chunk.content)
                except ValueError as exc:
                    failed += 1
                    logger.warning("embedding_chunk_failed job_id=%s chunk_id=%s error=%s", job_id, chunk_id, exc)
                else:
                    await jurisprudence_repo.store_embedding(session, chunk_id, vector, embedded_at=_utc_now())
                    # Commit per chunk so finished vectors survive a later crash.
                    await session.commit()
                    processed += 1
            await progress(min(99, position * 100 // total))
    return {"processed_chunks": processed, "failed_chunks": failed}


_PROCESSORS: dict[str, Callable[..., Awaitable[dict[str, Any]]]] = {
    GENERATE_DOCUMENT: process_generate_document,
    INGEST_JURISPRUDENCE: process_ingest_jurisprudence,
    GENERATE_EMBEDDINGS: process_generate_embeddings,
}


async def run_processor(
    kind: str,
    payload: dict[str, Any],
    *,
    job_id: str,
    providers: ProviderRegistry,
    progress: Progress,
) -> dict[str, Any]:
    processor = _PROCESSORS.get(kind)
    if processor is None:
        raise JobError(f"unknown job kind: {kind}", retryable=False)
    model = job_queue.PAYLOAD_MODELS[kind].model_validate(payload)
    return await processor(model, job_id=job_id, providers=providers, progress=progress)
