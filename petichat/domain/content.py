from __future__ import annotations

import html
from typing import Any, Iterable

from pydantic import BaseModel, Field


DOCUMENT_TYPE_LABELS: dict[str, str] = {
    "petition": "Petição Inicial",
    "contestation": "Contestação",
    "appeal": "Recurso de Apelação",
    "motion": "Requerimento",
    "brief": "Parecer",
    "contract": "Contrato",
    "other": "Peça Jurídica",
}
DOCUMENT_TYPES = tuple(DOCUMENT_TYPE_LABELS)


class Section(BaseModel):
    # One ordered block of a legal document (qualificação, fatos, direito, pedidos...).
    type: str
    title: str
    content: str
    order: int = Field(default=0, ge=0)


def document_type_label(document_type: str | None) -> str:
    return DOCUMENT_TYPE_LABELS.get(document_type or "", "Peça Jurídica")


def order_sections(sections: Iterable[Section | dict[str, Any]]) -> list[Section]:
    # Sort by explicit order and renumber densely so storage never carries gaps.
    parsed = [item if isinstance(item, Section) else Section.model_validate(item) for item in sections]
    indexed = sorted(enumerate(parsed), key=lambda pair: (pair[1].order, pair[0]))
    return [section.model_copy(update={"order": idx}) for idx, (_, section) in enumerate(indexed)]


def render_section(section: Section) -> str:
    # Section bodies are already markup produced by the editor or provider.
    return f"<section><h2>{html.escape(section.title)}</h2>{section.content}</section>"


def render_sections(sections: Iterable[Section | dict[str, Any]]) -> str:
    # Flat content is by definition the ordered concatenation of rendered sections.
    return "".join(render_section(section) for section in order_sections(sections))


def sections_to_json(sections: Iterable[Section]) -> list[dict[str, Any]]:
    return [section.model_dump() for section in sections]


def html_to_text(content_html: str) -> str:
    # Rough markup stripping for txt/docx/pdf export.
    text = content_html
    for tag in ("</section>", "</h2>", "</p>", "<br>", "<br/>", "<br />"):
        text = text.replace(tag, "\n")
    out: list[str] = []
    inside = False
    for char in text:
        if char == "<":
            inside = True
            continue
        if char == ">":
            inside = False
            continue
        if not inside:
            out.append(char)
    lines = [line.strip() for line in html.unescape("".join(out)).splitlines()]
    return "\n".join(line for line in lines if line)
