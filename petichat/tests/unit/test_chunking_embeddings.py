from __future__ import annotations

import math

import pytest

from petichat.core.config import EMBED_DIM
from petichat.ingestion.chunking import chunk_jurisprudence, chunk_text
from petichat.ingestion.embeddings import HashingEmbedder, embed_text


def test_short_paragraphs_stay_whole() -> None:
    text = "Primeiro parágrafo.\n\n\n\nSegundo parágrafo."
    assert chunk_text(text) == ["Primeiro parágrafo.", "Segundo parágrafo."]


def test_long_paragraph_is_windowed_with_overlap() -> None:
    paragraph = "a" * 2500
    chunks = chunk_text(paragraph, chunk_size=1000, chunk_overlap=100)
    assert [len(chunk) for chunk in chunks] == [1000, 1000, 700]
    assert "".join(chunks).count("a") == 2700


def test_summary_is_its_own_chunk() -> None:
    chunks = chunk_jurisprudence("Ementa curta.", "Voto do relator.\n\nDispositivo.")
    assert chunks == [
        ("summary", "Ementa curta."),
        ("full_text", "Voto do relator."),
        ("full_text", "Dispositivo."),
    ]
    assert chunk_jurisprudence("Ementa.", None) == [("summary", "Ementa.")]


def test_embeddings_are_normalized_and_accent_insensitive() -> None:
    vector = embed_text("Decisão sobre dano moral")
    assert len(vector) == EMBED_DIM
    assert math.isclose(sum(v * v for v in vector), 1.0, rel_tol=1e-9)
    assert embed_text("decisao sobre dano moral") == vector
    assert HashingEmbedder().embed("Decisão sobre dano moral") == vector


def test_empty_text_cannot_be_embedded() -> None:
    with pytest.raises(ValueError):
        embed_text(" ... ")
