from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from petichat.core.errors import ProviderError
from petichat.domain.content import Section
from petichat.providers.ai.base import GeneratedDocument, ThesisCandidate


_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)

# Models answer in Portuguese as often as in English.
_CATEGORY_ALIASES: dict[str, str] = {
    "preliminary": "preliminary",
    "preliminar": "preliminary",
    "preliminares": "preliminary",
    "merits": "merits",
    "merit": "merits",
    "merito": "merits",
    "mérito": "merits",
    "claim": "claim",
    "pedido": "claim",
    "pedidos": "claim",
}


class _RawDocument(BaseModel):
    title: str = Field(min_length=1)
    sections: list[Section] = Field(min_length=1)


def extract_json(raw: str) -> Any:
    # Strip markdown fences some models wrap around JSON payloads.
    text = (raw or "").strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProviderError("Resposta da IA em formato inválido") from exc


def parse_theses(raw: str, *, max_count: int) -> list[ThesisCandidate]:
    payload = extract_json(raw)
    if isinstance(payload, dict):
        payload = payload.get("theses")
    if not isinstance(payload, list):
        raise ProviderError("Resposta da IA sem lista de teses")
    candidates: list[ThesisCandidate] = []
    for item in payload:
        if not isinstance(item, dict):
            raise ProviderError("Tese em formato inválido")
        category = _CATEGORY_ALIASES.get(str(item.get("category", "")).strip().lower())
        try:
            candidates.append(ThesisCandidate.model_validate({**item, "category": category}))
        except PydanticValidationError as exc:
            raise ProviderError("Tese em formato inválido", details=exc.errors()) from exc
    return candidates[:max_count]


def parse_document(raw: str) -> GeneratedDocument:
    payload = extract_json(raw)
    try:
        document = _RawDocument.model_validate(payload)
    except PydanticValidationError as exc:
        raise ProviderError("Documento gerado em formato inválido", details=exc.errors()) from exc
    return GeneratedDocument.from_sections(document.title, document.sections)
