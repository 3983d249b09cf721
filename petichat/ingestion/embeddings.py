from __future__ import annotations

import hashlib
import math
import re
import unicodedata
from typing import Protocol

from petichat.core.config import EMBED_DIM


_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]:
        ...


def _fold(text: str) -> str:
    # Fold accents so "decisão" and "decisao" land on the same bucket.
    normalized = unicodedata.normalize("NFKD", text.lower())
    return "".join(char for char in normalized if not unicodedata.combining(char))


def _hash_token(token: str) -> tuple[int, float]:
    digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
    # Hash to a stable index within the fixed embedding dimension.
    idx = int(digest[:8], 16) % EMBED_DIM
    sign = 1.0 if int(digest[8:12], 16) % 2 == 0 else -1.0
    magnitude = (int(digest[12:20], 16) % 1000) / 1000.0
    return idx, sign * (0.2 + magnitude)


def embed_text(text: str) -> list[float]:
    tokens = _TOKEN_RE.findall(_fold(text or ""))
    if not tokens:
        raise ValueError("nothing to embed: text has no tokens")

    vector = [0.0] * EMBED_DIM
    for token in tokens:
        idx, value = _hash_token(token)
        vector[idx] += value

    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        raise ValueError("nothing to embed: zero vector")
    return [v / norm for v in vector]


class HashingEmbedder:
    """Deterministic local embedder; fixed EMBED_DIM output."""

    def embed(self, text: str) -> list[float]:
        return embed_text(text)
