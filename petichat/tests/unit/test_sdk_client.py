from __future__ import annotations

import json

import httpx
import pytest

from petichat.core.errors import ServiceBusyError, StaleActionError, ValidationError
from petichat.sdk.client import PetichatClient


def _envelope(data) -> dict:
    return {"data": data, "meta": {"request_id": "req-1", "api_version": "v1"}}


def _error(code: str, message: str, details=None) -> dict:
    return {"error": {"code": code, "message": message, "details": details}, "meta": {"request_id": "req-1"}}


@pytest.mark.asyncio
async def test_success_unwraps_data_and_sends_key() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=_envelope({"id": "case-1", "status": "draft"}))

    async with PetichatClient("pck_abc", base_url="http://test", transport=httpx.MockTransport(handler)) as client:
        case = await client.create_case(client_name="Maria", case_type="consumer", facts_description="Fatos.")

    assert case == {"id": "case-1", "status": "draft"}
    assert seen["auth"] == "Bearer pck_abc"
    assert seen["body"]["client_name"] == "Maria"


@pytest.mark.asyncio
async def test_error_envelopes_become_domain_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/apply"):
            return httpx.Response(410, json=_error("ACTION_EXPIRED", "A sugestão expirou"))
        return httpx.Response(
            422, json=_error("VALIDATION_ERROR", "Dados inválidos", [{"field": "text", "message": "required"}])
        )

    async with PetichatClient(base_url="http://test", transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(StaleActionError) as stale:
            await client.apply_action("act-1", document_id="doc-1", start=0, end=4)
        with pytest.raises(ValidationError) as invalid:
            await client.request_action("rewrite", "")

    assert stale.value.message == "A sugestão expirou"
    assert invalid.value.details == [{"field": "text", "message": "required"}]


@pytest.mark.asyncio
async def test_busy_responses_are_retried() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(503, headers={"Retry-After": "0"}, json=_error("SERVICE_BUSY", "ocupado"))
        return httpx.Response(200, json=_envelope({"job_id": "job-1", "status": "queued"}))

    async with PetichatClient(base_url="http://test", transport=httpx.MockTransport(handler)) as client:
        job = await client.get_job("job-1")

    assert job["status"] == "queued"
    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_retries_are_bounded() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, headers={"Retry-After": "0"}, json=_error("SERVICE_BUSY", "ocupado"))

    client = PetichatClient(base_url="http://test", max_retries=1, transport=httpx.MockTransport(handler))
    with pytest.raises(ServiceBusyError):
        await client.get_job("job-1")
    await client.aclose()
