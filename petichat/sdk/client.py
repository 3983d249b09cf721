from __future__ import annotations

import asyncio
from typing import Any

import httpx

from petichat.core.errors import (
    ConflictError,
    NotFoundError,
    PetichatError,
    ProviderError,
    ServiceBusyError,
    StaleActionError,
    UnauthorizedError,
    ValidationError,
)


_STATUS_ERRORS: dict[int, type[PetichatError]] = {
    401: UnauthorizedError,
    404: NotFoundError,
    409: ConflictError,
    410: StaleActionError,
    422: ValidationError,
    502: ProviderError,
    503: ServiceBusyError,
}

_RETRY_STATUSES = {429, 503}


def _retry_after_seconds(headers: httpx.Headers) -> float | None:
    retry_after = headers.get("Retry-After")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            return None
    return None


def _raise_for_envelope(response: httpx.Response) -> None:
    # Turn the API error envelope back into the matching domain exception.
    try:
        body = response.json()
    except ValueError:
        body = {}
    error = body.get("error") if isinstance(body, dict) else None
    error = error if isinstance(error, dict) else {}
    message = error.get("message") or f"HTTP {response.status_code}"
    error_cls = _STATUS_ERRORS.get(response.status_code, PetichatError)
    raise error_cls(message, details=error.get("details"))


class PetichatClient:
    """Async API client that retries 429/503 responses with backoff."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "http://localhost:8000",
        *,
        max_retries: int = 2,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_s: float = 90.0,
    ) -> None:
        default_headers = dict(headers or {})
        if api_key:
            default_headers["Authorization"] = f"Bearer {api_key}"
        self._max_retries = max_retries
        self._http = httpx.AsyncClient(
            base_url=base_url, headers=default_headers, transport=transport, timeout=timeout_s
        )

    async def __aenter__(self) -> "PetichatClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            response = await self._http.request(method, path, **kwargs)
            if response.status_code in _RETRY_STATUSES and attempt < self._max_retries:
                retry_after = _retry_after_seconds(response.headers)
                if retry_after is None:
                    retry_after = min(2.0, 0.25 * (2 ** attempt))
                await asyncio.sleep(retry_after)
                attempt += 1
                continue
            if response.status_code >= 400:
                _raise_for_envelope(response)
            if response.status_code == 204:
                return None
            return response.json().get("data")

    # Cases

    async def create_case(self, *, client_name: str, case_type: str, facts_description: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/v1/cases",
            json={"client_name": client_name, "case_type": case_type, "facts_description": facts_description},
        )

    async def get_case(self, case_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/v1/cases/{case_id}")

    # Theses

    async def suggest_theses(self, case_id: str, *, document_type: str | None = None) -> list[dict[str, Any]]:
        data = await self._request(
            "POST", f"/v1/cases/{case_id}/theses/suggest", json={"document_type": document_type}
        )
        return data["items"]

    async def select_theses(self, case_id: str, thesis_ids: list[str]) -> list[dict[str, Any]]:
        data = await self._request(
            "PUT", f"/v1/cases/{case_id}/theses/selection", json={"thesis_ids": thesis_ids}
        )
        return data["items"]

    # Jurisprudence

    async def search_jurisprudence(
        self, *, keywords: str | None = None, tribunal: str | None = None, limit: int = 20
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit}
        if keywords:
            params["keywords"] = keywords
        if tribunal:
            params["tribunal"] = tribunal
        data = await self._request("GET", "/v1/jurisprudence", params=params)
        return data["items"]

    async def set_citations(self, case_id: str, jurisprudence_ids: list[str]) -> list[dict[str, Any]]:
        data = await self._request(
            "PUT", f"/v1/cases/{case_id}/citations", json={"jurisprudence_ids": jurisprudence_ids}
        )
        return data["items"]

    # Documents

    async def generate_document(
        self, case_id: str, *, document_type: str = "petition", title: str | None = None
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/v1/documents/generate",
            json={"case_id": case_id, "document_type": document_type, "title": title},
        )

    async def get_document(self, document_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/v1/documents/{document_id}")

    # Editor

    async def request_action(
        self, action: str, text: str, context: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return await self._request(
            "POST", "/v1/editor/actions", json={"action": action, "text": text, "context": context}
        )

    async def apply_action(self, action_id: str, *, document_id: str, start: int, end: int) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/v1/editor/actions/{action_id}/apply",
            json={"document_id": document_id, "position": {"from": start, "to": end}},
        )

    async def discard_action(self, action_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/v1/editor/actions/{action_id}/discard")

    # Jobs

    async def enqueue_generate_document(
        self, case_id: str, *, idempotency_key: str | None = None, include_jurisprudence: bool = True
    ) -> dict[str, Any]:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        return await self._request(
            "POST",
            "/v1/jobs/generate-document",
            json={"case_id": case_id, "include_jurisprudence": include_jurisprudence},
            headers=headers,
        )

    async def get_job(self, job_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/v1/jobs/{job_id}")
