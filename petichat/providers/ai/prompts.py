from __future__ import annotations

from petichat.domain.content import document_type_label
from petichat.providers.ai.base import GenerationContext, RewriteContext, SuggestOptions


SYSTEM_PROMPT = (
    "Você é um assistente jurídico especializado em direito brasileiro. "
    "Responda sempre em português do Brasil, com linguagem técnica e precisa."
)


def suggest_theses_prompt(facts: str, options: SuggestOptions) -> str:
    lines = [
        f"Sugira até {options.max_count} teses jurídicas para o caso abaixo.",
        f"Tipo de peça: {document_type_label(options.document_type)}.",
    ]
    if options.legal_area:
        lines.append(f"Área do direito: {options.legal_area}.")
    lines.extend(
        [
            'Responda em JSON: {"theses": [{"category": "preliminary|merits", "title": "...", "content": "..."}]}.',
            "Fatos:",
            facts,
        ]
    )
    return "\n".join(lines)


def generate_document_prompt(context: GenerationContext) -> str:
    lines = [
        f"Redija uma {document_type_label(context.document_type)} completa.",
        f"Cliente: {context.client_name or 'não informado'}. Tipo de caso: {context.case_type or 'não informado'}.",
        "Fatos:",
        context.facts,
    ]
    if context.theses:
        lines.append("Teses selecionadas:")
        lines.extend(f"- [{thesis.category}] {thesis.title}: {thesis.content}" for thesis in context.theses)
    if context.citations:
        lines.append("Jurisprudência a citar:")
        lines.extend(
            f"- {citation.tribunal} {citation.process_number}: {citation.summary}"
            for citation in context.citations
        )
    lines.append(
        'Responda em JSON: {"title": "...", "sections": [{"type": "...", "title": "...", '
        '"content": "<p>...</p>", "order": 0}]}.'
    )
    return "\n".join(lines)


def rewrite_prompt(text: str, directive: str, context: RewriteContext | None = None) -> str:
    lines = [f"{directive}. Retorne apenas o texto reescrito, sem comentários."]
    if context is not None:
        if context.facts:
            lines.extend(["Fatos do caso:", context.facts])
        if context.thesis is not None:
            lines.append(f"Tese em desenvolvimento: {context.thesis.title}: {context.thesis.content}")
        if context.citations:
            lines.append("Use somente a jurisprudência abaixo, citando tribunal e número do processo:")
            lines.extend(
                f"- {citation.tribunal} {citation.process_number}: {citation.summary}" for citation in context.citations
            )
    lines.extend(["", "Texto:", text])
    return "\n".join(lines)
