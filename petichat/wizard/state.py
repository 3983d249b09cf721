from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


FIRST_STEP = 1
LAST_STEP = 3

# Minimum lengths mirror the case create validation.
MIN_CLIENT_NAME_CHARS = 2
MIN_FACTS_CHARS = 10


@dataclass
class WizardState:
    """Client-held state for one facts -> theses -> draft session.

    Selections are id sets looked up against the candidate lists, so
    selection order is never meaningful.
    """

    current_step: int = FIRST_STEP
    case_id: str | None = None
    client_name: str = ""
    case_type: str = ""
    facts_description: str = ""
    document_type: str = "petition"
    theses: list[dict[str, Any]] = field(default_factory=list)
    selected_thesis_ids: set[str] = field(default_factory=set)
    jurisprudences: list[dict[str, Any]] = field(default_factory=list)
    selected_jurisprudence_ids: set[str] = field(default_factory=set)
    theses_loading: bool = False
    jurisprudence_loading: bool = False
    generating: bool = False
    document_id: str | None = None
    document_content: str | None = None
    document_title: str | None = None
    error: str | None = None

    def facts_ready(self) -> bool:
        return (
            len(self.client_name.strip()) >= MIN_CLIENT_NAME_CHARS
            and bool(self.case_type.strip())
            and len(self.facts_description.strip()) >= MIN_FACTS_CHARS
        )

    def selected_theses(self) -> list[dict[str, Any]]:
        return [thesis for thesis in self.theses if thesis["id"] in self.selected_thesis_ids]

    def selected_jurisprudences(self) -> list[dict[str, Any]]:
        return [item for item in self.jurisprudences if item["id"] in self.selected_jurisprudence_ids]
