from __future__ import annotations

from typing import Iterable


# Chunking constants keep ingestion deterministic across runs.
CHUNK_SIZE_CHARS = 1000
CHUNK_OVERLAP_CHARS = 120


def _window_text(text: str, size: int, overlap: int) -> Iterable[str]:
    # Stable sliding window for long paragraphs, preserving order.
    start = 0
    length = len(text)
    while start < length:
        end = min(length, start + size)
        yield text[start:end]
        if end == length:
            break
        start = max(0, end - overlap)


def chunk_text(
    text: str,
    *,
    chunk_size: int = CHUNK_SIZE_CHARS,
    chunk_overlap: int = CHUNK_OVERLAP_CHARS,
) -> list[str]:
    # Prefer paragraph boundaries (decision bodies are paragraph-structured); window long blocks.
    chunks: list[str] = []
    for paragraph in (p.strip() for p in (text or "").split("\n\n")):
        if not paragraph:
            continue
        if len(paragraph) <= chunk_size:
            chunks.append(paragraph)
        else:
            chunks.extend(_window_text(paragraph, chunk_size, chunk_overlap))
    return chunks


def chunk_jurisprudence(summary: str, full_text: str | None) -> list[tuple[str, str]]:
    # The ementa is always its own chunk; the full decision follows in windows.
    chunks: list[tuple[str, str]] = []
    if summary and summary.strip():
        chunks.append(("summary", summary.strip()))
    chunks.extend(("full_text", chunk) for chunk in chunk_text(full_text or ""))
    return chunks
