from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from petichat.sdk.client import PetichatClient


@dataclass(frozen=True)
class GeneratedDraft:
    document_id: str
    title: str
    content: str


class WizardBackend(Protocol):
    async def create_case(self, *, client_name: str, case_type: str, facts_description: str) -> str:
        ...

    async def suggest_theses(self, case_id: str, *, document_type: str) -> list[dict[str, Any]]:
        ...

    async def search_jurisprudence(self, keywords: str | None, *, tribunal: str | None) -> list[dict[str, Any]]:
        ...

    async def generate_document(
        self,
        case_id: str,
        *,
        document_type: str,
        thesis_ids: set[str],
        jurisprudence_ids: set[str],
    ) -> GeneratedDraft:
        ...


class ApiWizardBackend:
    """Drives the wizard against the HTTP API through the SDK client."""

    def __init__(self, client: PetichatClient) -> None:
        self._client = client

    async def create_case(self, *, client_name: str, case_type: str, facts_description: str) -> str:
        case = await self._client.create_case(
            client_name=client_name, case_type=case_type, facts_description=facts_description
        )
        return case["id"]

    async def suggest_theses(self, case_id: str, *, document_type: str) -> list[dict[str, Any]]:
        return await self._client.suggest_theses(case_id, document_type=document_type)

    async def search_jurisprudence(self, keywords: str | None, *, tribunal: str | None) -> list[dict[str, Any]]:
        return await self._client.search_jurisprudence(keywords=keywords, tribunal=tribunal)

    async def generate_document(
        self,
        case_id: str,
        *,
        document_type: str,
        thesis_ids: set[str],
        jurisprudence_ids: set[str],
    ) -> GeneratedDraft:
        # Persist the client-side selections first; generation reads them server-side.
        await self._client.select_theses(case_id, sorted(thesis_ids))
        await self._client.set_citations(case_id, sorted(jurisprudence_ids))
        document = await self._client.generate_document(case_id, document_type=document_type)
        return GeneratedDraft(
            document_id=document["id"],
            title=document["title"],
            content=document["content_html"],
        )
