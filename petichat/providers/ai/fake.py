from __future__ import annotations

from petichat.domain.content import Section, document_type_label
from petichat.providers.ai.base import (
    GeneratedDocument,
    GenerationContext,
    RewriteContext,
    SuggestOptions,
    ThesisCandidate,
    resolve_instruction,
)


_FAKE_THESES: list[ThesisCandidate] = [
    ThesisCandidate(
        category="preliminary",
        title="Ilegitimidade Passiva",
        content="O réu não possui legitimidade para figurar no polo passivo da demanda.",
    ),
    ThesisCandidate(
        category="preliminary",
        title="Prescrição",
        content="A pretensão encontra-se fulminada pela prescrição, nos termos do art. 206 do Código Civil.",
    ),
    ThesisCandidate(
        category="merits",
        title="Responsabilidade Civil Objetiva",
        content="Aplica-se a responsabilidade objetiva prevista no art. 14 do Código de Defesa do Consumidor.",
    ),
    ThesisCandidate(
        category="merits",
        title="Dano Moral Configurado",
        content="A conduta ilícita ultrapassou o mero aborrecimento, configurando dano moral indenizável.",
    ),
]


class FakeAIProvider:
    name = "fake"
    model = "fake-legal-1"

    def __init__(self, theses: list[ThesisCandidate] | None = None) -> None:
        # Deterministic output keeps tests stable without external calls.
        self._theses = list(theses) if theses is not None else list(_FAKE_THESES)
        self.calls: list[str] = []

    async def suggest_theses(
        self, facts: str, options: SuggestOptions | None = None
    ) -> list[ThesisCandidate]:
        self.calls.append("suggest_theses")
        options = options or SuggestOptions()
        return self._theses[: options.max_count]

    async def generate_document(self, context: GenerationContext) -> GeneratedDocument:
        self.calls.append("generate_document")
        client = context.client_name or "Cliente"
        label = document_type_label(context.document_type)
        sections = [
            Section(
                type="qualification",
                title="QUALIFICAÇÃO DAS PARTES",
                content=f"<p>{client}, já qualificado nos autos, vem respeitosamente à presença de Vossa Excelência.</p>",
                order=0,
            ),
            Section(type="facts", title="DOS FATOS", content=f"<p>{context.facts}</p>", order=1),
        ]
        if context.theses:
            body = "".join(f"<h3>{thesis.title}</h3><p>{thesis.content}</p>" for thesis in context.theses)
            sections.append(Section(type="law", title="DO DIREITO", content=body, order=2))
        if context.citations:
            body = "".join(
                f"<p>{citation.tribunal}, {citation.process_number}: {citation.summary}</p>"
                for citation in context.citations
            )
            sections.append(Section(type="jurisprudence", title="DA JURISPRUDÊNCIA", content=body, order=3))
        sections.append(
            Section(
                type="claims",
                title="DOS PEDIDOS",
                content="<p>Ante o exposto, requer a total procedência dos pedidos.</p>",
                order=4,
            )
        )
        return GeneratedDocument.from_sections(f"{label} - {client}", sections)

    async def rewrite_text(
        self,
        text: str,
        instruction: str,
        custom_instruction: str | None = None,
        context: RewriteContext | None = None,
    ) -> str:
        self.calls.append("rewrite_text")
        directive = resolve_instruction(instruction, custom_instruction)
        if instruction == "formalize":
            return f"Destarte, {text.rstrip('.')}. Neste diapasão, resta evidenciado o direito pleiteado."
        if instruction == "simplify":
            words = text.split()
            return " ".join(words[: max(1, len(words) // 2)]) + "."
        if instruction == "expand":
            return (
                f"{text} Ademais, cumpre salientar que tal circunstância encontra amparo no "
                "ordenamento jurídico pátrio, notadamente na legislação aplicável à espécie."
            )
        if instruction == "improve":
            return f"Cumpre destacar que {text[:1].lower()}{text[1:]}"
        if context is not None and context.citations:
            cited = "; ".join(f"{citation.tribunal}, {citation.process_number}" for citation in context.citations)
            return f"{text} Nesse sentido: {cited}."
        return f"{text} [{directive}]"
