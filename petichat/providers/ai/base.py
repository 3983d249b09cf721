from __future__ import annotations

from typing import Literal, Protocol

from pydantic import BaseModel, Field, model_validator

from petichat.core.errors import ValidationError
from petichat.domain.content import Section, order_sections, render_sections


ThesisCategory = Literal["preliminary", "merits", "claim"]
RewriteInstruction = Literal["improve", "simplify", "expand", "formalize", "custom"]

INSTRUCTION_TEXT: dict[str, str] = {
    "improve": "Melhore a clareza e a fluidez do texto",
    "simplify": "Simplifique o texto mantendo o sentido jurídico",
    "expand": "Expanda o texto com mais detalhes e fundamentação",
    "formalize": "Reescreva o texto em linguagem jurídica formal",
}


class SuggestOptions(BaseModel):
    document_type: str | None = None
    legal_area: str | None = None
    max_count: int = Field(default=6, ge=1, le=20)


class ThesisCandidate(BaseModel):
    category: ThesisCategory
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class ThesisInput(BaseModel):
    category: str
    title: str
    content: str


class CitationInput(BaseModel):
    tribunal: str
    process_number: str
    summary: str


class GenerationContext(BaseModel):
    facts: str
    document_type: str
    theses: list[ThesisInput] = Field(default_factory=list)
    citations: list[CitationInput] = Field(default_factory=list)
    client_name: str | None = None
    case_type: str | None = None


class RewriteContext(BaseModel):
    case_id: str | None = None
    thesis_id: str | None = None
    jurisprudence_ids: list[str] = Field(default_factory=list)
    # Filled server-side from the ids above, never taken from the caller.
    facts: str | None = None
    thesis: ThesisInput | None = None
    citations: list[CitationInput] = Field(default_factory=list)

    def reference_ids(self) -> dict[str, object]:
        return {"case_id": self.case_id, "thesis_id": self.thesis_id, "jurisprudence_ids": list(self.jurisprudence_ids)}


class GeneratedDocument(BaseModel):
    title: str = Field(min_length=1)
    flat_content: str
    sections: list[Section]

    @model_validator(mode="after")
    def _flat_content_matches_sections(self) -> "GeneratedDocument":
        # Flat content must always be derivable from the ordered sections.
        if self.flat_content != render_sections(self.sections):
            raise ValueError("flat_content does not match rendered sections")
        return self

    @classmethod
    def from_sections(cls, title: str, sections: list[Section]) -> "GeneratedDocument":
        ordered = order_sections(sections)
        return cls(title=title, sections=ordered, flat_content=render_sections(ordered))


def resolve_instruction(instruction: str, custom_instruction: str | None) -> str:
    # A custom rewrite without its instruction text is rejected rather than guessed.
    if instruction == "custom":
        if not custom_instruction or not custom_instruction.strip():
            raise ValidationError(
                "Instrução personalizada obrigatória",
                details=[{"field": "custom_instruction", "message": "required when instruction=custom"}],
            )
        return custom_instruction.strip()
    if instruction not in INSTRUCTION_TEXT:
        raise ValidationError(
            "Instrução inválida",
            details=[{"field": "instruction", "message": f"unsupported instruction: {instruction}"}],
        )
    return INSTRUCTION_TEXT[instruction]


class AIProvider(Protocol):
    name: str
    model: str

    async def suggest_theses(
        self, facts: str, options: SuggestOptions | None = None
    ) -> list[ThesisCandidate]:
        ...

    async def generate_document(self, context: GenerationContext) -> GeneratedDocument:
        ...

    async def rewrite_text(
        self,
        text: str,
        instruction: RewriteInstruction,
        custom_instruction: str | None = None,
        context: RewriteContext | None = None,
    ) -> str:
        ...
