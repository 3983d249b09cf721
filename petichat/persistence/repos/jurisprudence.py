from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import Citation, Jurisprudence, JurisprudenceChunk
from petichat.persistence.guards import tenant_predicate


async def search(
    session: AsyncSession,
    *,
    keywords: str | None = None,
    tribunal: str | None = None,
    year: int | None = None,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[Jurisprudence], int]:
    # Jurisprudence is shared reference data; no tenant predicate applies.
    filters = []
    if keywords:
        pattern = f"%{keywords}%"
        filters.append(or_(Jurisprudence.summary.ilike(pattern), Jurisprudence.full_text.ilike(pattern)))
    if tribunal:
        filters.append(Jurisprudence.tribunal == tribunal)
    if year:
        filters.append(
            and_(
                Jurisprudence.decision_date >= date(year, 1, 1),
                Jurisprudence.decision_date <= date(year, 12, 31),
            )
        )
    total = await session.scalar(select(func.count()).select_from(Jurisprudence).where(*filters))
    result = await session.execute(
        select(Jurisprudence)
        .where(*filters)
        .order_by(Jurisprudence.decision_date.desc(), Jurisprudence.id)
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def get_jurisprudence(session: AsyncSession, jurisprudence_id: str) -> Jurisprudence | None:
    return await session.get(Jurisprudence, jurisprudence_id)


async def get_many(session: AsyncSession, jurisprudence_ids: Iterable[str]) -> list[Jurisprudence]:
    ids = list(jurisprudence_ids)
    if not ids:
        return []
    result = await session.execute(select(Jurisprudence).where(Jurisprudence.id.in_(ids)))
    return list(result.scalars().all())


async def list_tribunals(session: AsyncSession) -> list[str]:
    result = await session.execute(
        select(Jurisprudence.tribunal).distinct().order_by(Jurisprudence.tribunal)
    )
    return [row for row in result.scalars().all()]


async def existing_keys(
    session: AsyncSession, keys: Iterable[tuple[str, str]]
) -> set[tuple[str, str]]:
    # Dedup key is (tribunal, process_number).
    wanted = list(set(keys))
    if not wanted:
        return set()
    # Narrow by process number, then match the full pair; row-value IN is not portable.
    result = await session.execute(
        select(Jurisprudence.tribunal, Jurisprudence.process_number).where(
            Jurisprudence.process_number.in_(sorted({process for _, process in wanted}))
        )
    )
    found = {(row[0], row[1]) for row in result.all()}
    return found & set(wanted)


async def insert_jurisprudence(
    session: AsyncSession,
    *,
    tribunal: str,
    process_number: str,
    decision_date: date | None,
    summary: str,
    full_text: str | None,
    external_url: str | None,
    source: str | None,
) -> Jurisprudence:
    record = Jurisprudence(
        tribunal=tribunal,
        process_number=process_number,
        decision_date=decision_date,
        summary=summary,
        full_text=full_text,
        external_url=external_url,
        source=source,
    )
    session.add(record)
    await session.flush()
    return record


async def add_chunks(
    session: AsyncSession, jurisprudence_id: str, chunks: Iterable[tuple[str, str]]
) -> list[JurisprudenceChunk]:
    rows = [
        JurisprudenceChunk(
            jurisprudence_id=jurisprudence_id,
            chunk_index=index,
            chunk_type=chunk_type,
            content=content,
        )
        for index, (chunk_type, content) in enumerate(chunks)
    ]
    session.add_all(rows)
    await session.flush()
    return rows


async def unembedded_chunk_ids(session: AsyncSession, keys: Iterable[tuple[str, str]]) -> list[str]:
    # Chunks of the given records still waiting for a vector, in document order.
    wanted = set(keys)
    if not wanted:
        return []
    result = await session.execute(
        select(JurisprudenceChunk.id, Jurisprudence.tribunal, Jurisprudence.process_number)
        .join(Jurisprudence, JurisprudenceChunk.jurisprudence_id == Jurisprudence.id)
        .where(
            Jurisprudence.process_number.in_(sorted({process for _, process in wanted})),
            JurisprudenceChunk.embedded_at.is_(None),
        )
        .order_by(JurisprudenceChunk.jurisprudence_id, JurisprudenceChunk.chunk_index)
    )
    return [row[0] for row in result.all() if (row[1], row[2]) in wanted]


async def get_chunk(session: AsyncSession, chunk_id: str) -> JurisprudenceChunk | None:
    return await session.get(JurisprudenceChunk, chunk_id)


async def store_embedding(
    session: AsyncSession, chunk_id: str, embedding: list[float], *, embedded_at: datetime
) -> bool:
    # Overwrite in place; recomputing an embedding is idempotent.
    chunk = await session.get(JurisprudenceChunk, chunk_id)
    if chunk is None:
        return False
    chunk.embedding = embedding
    chunk.embedded_at = embedded_at
    return True


async def list_citations(session: AsyncSession, tenant_id: str, case_id: str) -> list[Citation]:
    result = await session.execute(
        select(Citation)
        .where(Citation.case_id == case_id, tenant_predicate(Citation, tenant_id))
        .order_by(Citation.position)
    )
    return list(result.scalars().all())


async def replace_citations(
    session: AsyncSession,
    *,
    tenant_id: str,
    case_id: str,
    records: list[Jurisprudence],
) -> list[Citation]:
    # The citation set mirrors the caller's jurisprudence selection in its given order.
    await session.execute(
        delete(Citation).where(Citation.case_id == case_id, tenant_predicate(Citation, tenant_id))
    )
    rows = [
        Citation(
            tenant_id=tenant_id,
            case_id=case_id,
            jurisprudence_id=record.id,
            tribunal=record.tribunal,
            process_number=record.process_number,
            excerpt=record.summary,
            position=position,
        )
        for position, record in enumerate(records)
    ]
    session.add_all(rows)
    await session.flush()
    return rows
