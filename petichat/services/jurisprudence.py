from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.core.config import get_settings
from petichat.core.errors import JobError, NotFoundError, ValidationError
from petichat.domain.models import Citation, Jurisprudence
from petichat.persistence.repos import jurisprudence as jurisprudence_repo
from petichat.services.cases import get_case


logger = logging.getLogger(__name__)

# Field aliases seen in public court datasets (Portuguese) next to our own names.
_ALIASES: dict[str, tuple[str, ...]] = {
    "tribunal": ("tribunal", "court", "orgao"),
    "process_number": ("process_number", "processNumber", "numero", "numero_processo"),
    "decision_date": ("decision_date", "decisionDate", "data_julgamento", "data"),
    "summary": ("summary", "ementa"),
    "full_text": ("full_text", "fullText", "inteiro_teor"),
    "external_url": ("external_url", "url", "link"),
}

SAMPLE_DATASET: list[dict[str, Any]] = [
    {
        "tribunal": "STJ",
        "numero": "REsp 1.234.567/SP",
        "data_julgamento": "2023-03-14",
        "ementa": "Responsabilidade civil. Dano moral. Inscrição indevida em cadastro de inadimplentes. Dano in re ipsa.",
        "inteiro_teor": "A inscrição indevida do nome do consumidor em cadastro de inadimplentes gera dano moral presumido.",
    },
    {
        "tribunal": "STJ",
        "numero": "REsp 1.737.412/SE",
        "data_julgamento": "2019-02-05",
        "ementa": "Consumidor. Desvio produtivo. Tempo útil perdido pelo consumidor. Indenização devida.",
    },
    {
        "tribunal": "TJSP",
        "numero": "Apelação Cível 1001234-56.2022.8.26.0100",
        "data_julgamento": "2022-11-08",
        "ementa": "Prestação de serviços. Cobrança indevida. Repetição do indébito em dobro. Art. 42, parágrafo único, do CDC.",
    },
]


@dataclass(frozen=True)
class NormalizedJurisprudence:
    tribunal: str
    process_number: str
    decision_date: date | None
    summary: str
    full_text: str | None
    external_url: str | None

    @property
    def key(self) -> tuple[str, str]:
        return self.tribunal, self.process_number


def _pick(raw: dict[str, Any], field: str) -> Any:
    for alias in _ALIASES[field]:
        value = raw.get(alias)
        if value not in (None, ""):
            return value
    return None


def _parse_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unparseable decision date: {text}")


def normalize_record(raw: dict[str, Any]) -> NormalizedJurisprudence:
    # Raise ValueError for records that cannot be ingested; the job counts them as errors.
    tribunal = _pick(raw, "tribunal")
    process_number = _pick(raw, "process_number")
    summary = _pick(raw, "summary")
    if not tribunal or not process_number or not summary:
        raise ValueError("record missing tribunal, process number or summary")
    full_text = _pick(raw, "full_text")
    external_url = _pick(raw, "external_url")
    return NormalizedJurisprudence(
        tribunal=str(tribunal).strip().upper(),
        process_number=" ".join(str(process_number).split()),
        decision_date=_parse_date(_pick(raw, "decision_date")),
        summary=str(summary).strip(),
        full_text=str(full_text).strip() if full_text else None,
        external_url=str(external_url).strip() if external_url else None,
    )


async def fetch_dataset(
    source: str, dataset_url: str | None, *, client: httpx.AsyncClient | None = None
) -> list[dict[str, Any]]:
    # Network and 5xx failures are retryable; a malformed dataset is not.
    if not dataset_url:
        if source == "sample":
            return [dict(item) for item in SAMPLE_DATASET]
        raise JobError(f"dataset_url required for source {source}", retryable=False)
    timeout_s = get_settings().dataset_fetch_timeout_ms / 1000.0
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout_s)
    try:
        response = await http.get(dataset_url)
    except httpx.HTTPError as exc:
        raise JobError(f"dataset fetch failed: {type(exc).__name__}") from exc
    finally:
        if owns_client:
            await http.aclose()
    if response.status_code >= 500:
        raise JobError(f"dataset fetch failed: HTTP {response.status_code}")
    if response.status_code >= 400:
        raise JobError(f"dataset fetch rejected: HTTP {response.status_code}", retryable=False)
    try:
        payload = response.json()
    except ValueError as exc:
        raise JobError("dataset is not valid JSON", retryable=False) from exc
    if isinstance(payload, dict):
        payload = payload.get("items") or payload.get("data") or []
    if not isinstance(payload, list):
        raise JobError("dataset must be a list of records", retryable=False)
    return [item for item in payload if isinstance(item, dict)]


async def search(
    session: AsyncSession,
    *,
    keywords: str | None,
    tribunal: str | None,
    year: int | None,
    page: int,
    limit: int,
) -> tuple[list[Jurisprudence], int]:
    return await jurisprudence_repo.search(
        session,
        keywords=keywords,
        tribunal=tribunal.upper() if tribunal else None,
        year=year,
        offset=(page - 1) * limit,
        limit=limit,
    )


async def get_jurisprudence(session: AsyncSession, jurisprudence_id: str) -> Jurisprudence:
    record = await jurisprudence_repo.get_jurisprudence(session, jurisprudence_id)
    if record is None:
        raise NotFoundError("Jurisprudência não encontrada")
    return record


async def set_case_citations(
    session: AsyncSession, *, tenant_id: str, case_id: str, jurisprudence_ids: list[str]
) -> list[Citation]:
    # Order of the given ids becomes citation position.
    await get_case(session, tenant_id, case_id)
    ordered_ids = list(dict.fromkeys(jurisprudence_ids))
    records = {record.id: record for record in await jurisprudence_repo.get_many(session, ordered_ids)}
    missing = [jid for jid in ordered_ids if jid not in records]
    if missing:
        raise ValidationError(
            "Dados inválidos",
            details=[{"field": "jurisprudence_ids", "message": f"unknown jurisprudence: {jid}"} for jid in missing],
        )
    citations = await jurisprudence_repo.replace_citations(
        session,
        tenant_id=tenant_id,
        case_id=case_id,
        records=[records[jid] for jid in ordered_ids],
    )
    await session.commit()
    return citations
