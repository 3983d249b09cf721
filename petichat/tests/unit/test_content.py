from __future__ import annotations

import pytest

from petichat.domain.content import Section, document_type_label, html_to_text, order_sections, render_sections
from petichat.providers.ai.base import GeneratedDocument


def test_order_sections_sorts_and_renumbers_densely() -> None:
    sections = [
        {"type": "claims", "title": "DOS PEDIDOS", "content": "<p>c</p>", "order": 9},
        Section(type="facts", title="DOS FATOS", content="<p>a</p>", order=2),
        {"type": "law", "title": "DO DIREITO", "content": "<p>b</p>", "order": 5},
    ]
    ordered = order_sections(sections)
    assert [section.type for section in ordered] == ["facts", "law", "claims"]
    assert [section.order for section in ordered] == [0, 1, 2]


def test_render_sections_is_concatenation_in_order() -> None:
    sections = [
        Section(type="law", title="DO DIREITO", content="<p>b</p>", order=1),
        Section(type="facts", title="DOS FATOS", content="<p>a</p>", order=0),
    ]
    rendered = render_sections(sections)
    assert rendered.index("DOS FATOS") < rendered.index("DO DIREITO")
    assert rendered.startswith("<section><h2>DOS FATOS</h2><p>a</p></section>")


def test_generated_document_rejects_mismatched_flat_content() -> None:
    sections = [Section(type="facts", title="DOS FATOS", content="<p>a</p>", order=0)]
    with pytest.raises(ValueError):
        GeneratedDocument(title="Petição", sections=sections, flat_content="<p>outra coisa</p>")
    document = GeneratedDocument.from_sections("Petição", sections)
    assert document.flat_content == render_sections(sections)


def test_html_to_text_strips_markup_and_unescapes() -> None:
    text = html_to_text("<section><h2>DOS FATOS</h2><p>Autor &amp; réu</p></section><p>Fim</p>")
    assert text.splitlines() == ["DOS FATOS", "Autor & réu", "Fim"]


def test_document_type_label_falls_back() -> None:
    assert document_type_label("contestation") == "Contestação"
    assert document_type_label("unknown") == "Peça Jurídica"
