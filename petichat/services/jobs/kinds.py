from __future__ import annotations

from dataclasses import dataclass

from petichat.core.config import get_settings


GENERATE_DOCUMENT = "generate_document"
INGEST_JURISPRUDENCE = "ingest_jurisprudence"
GENERATE_EMBEDDINGS = "generate_embeddings"
JOB_KINDS = (GENERATE_DOCUMENT, INGEST_JURISPRUDENCE, GENERATE_EMBEDDINGS)

# arq limits sit above the runner's own so the runner always records the outcome.
WORKER_TIMEOUT_MARGIN_S = 30
WORKER_EXTRA_TRIES = 1


@dataclass(frozen=True)
class JobKindConfig:
    # Per-kind queue options; the kind name doubles as the arq function name.
    kind: str
    queue_name: str
    max_tries: int
    backoff_ms: int
    concurrency: int
    keep_completed: int
    keep_failed: int


def kind_config(kind: str) -> JobKindConfig:
    if kind not in JOB_KINDS:
        raise ValueError(f"unknown job kind: {kind}")
    settings = get_settings()
    return JobKindConfig(
        kind=kind,
        queue_name=getattr(settings, f"{kind}_queue_name"),
        max_tries=max(1, getattr(settings, f"{kind}_max_tries")),
        backoff_ms=getattr(settings, f"{kind}_backoff_ms"),
        concurrency=max(1, getattr(settings, f"{kind}_concurrency")),
        keep_completed=getattr(settings, f"{kind}_keep_completed"),
        keep_failed=getattr(settings, f"{kind}_keep_failed"),
    )
