from __future__ import annotations

from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from petichat.apps.api.main import create_app


def _dev_headers(tenant_id: str, role: str = "editor") -> dict[str, str]:
    return {"X-Tenant-Id": tenant_id, "X-Role": role, "X-User-Id": f"user-{tenant_id}"}


_CASE = {
    "client_name": "Maria da Silva",
    "case_type": "consumer",
    "facts_description": "A cliente foi cobrada duas vezes pela mesma fatura do cartão de crédito.",
    "metadata": {"court": "TJSP"},
}


@pytest.mark.asyncio
async def test_case_crud_roundtrip() -> None:
    headers = _dev_headers(f"t-cases-{uuid4().hex}")
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        created = await client.post("/v1/cases", json=_CASE, headers=headers)
        assert created.status_code == 201
        body = created.json()
        assert body["meta"]["api_version"] == "v1"
        case = body["data"]
        assert case["status"] == "draft"
        assert case["current_step"] == 1
        assert case["metadata"] == {"court": "TJSP"}
        assert case["theses"] == []

        fetched = await client.get(f"/v1/cases/{case['id']}", headers=headers)
        assert fetched.status_code == 200
        assert fetched.json()["data"]["client_name"] == "Maria da Silva"

        patched = await client.patch(
            f"/v1/cases/{case['id']}",
            json={"metadata": {"court": "TJRJ"}, "current_step": 2},
            headers=headers,
        )
        assert patched.status_code == 200
        assert patched.json()["data"]["metadata"] == {"court": "TJRJ"}
        assert patched.json()["data"]["current_step"] == 2

        listed = await client.get("/v1/cases", params={"search": "Maria"}, headers=headers)
        assert listed.status_code == 200
        assert listed.json()["data"]["total"] == 1

        deleted = await client.delete(f"/v1/cases/{case['id']}", headers=headers)
        assert deleted.json()["data"] == {"id": case["id"], "deleted": True}
        missing = await client.get(f"/v1/cases/{case['id']}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_cases_are_invisible_across_tenants() -> None:
    owner = _dev_headers(f"t-owner-{uuid4().hex}")
    other = _dev_headers(f"t-other-{uuid4().hex}")
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        case_id = (await client.post("/v1/cases", json=_CASE, headers=owner)).json()["data"]["id"]

        assert (await client.get(f"/v1/cases/{case_id}", headers=other)).status_code == 404
        assert (await client.patch(f"/v1/cases/{case_id}", json={"status": "archived"}, headers=other)).status_code == 404
        assert (await client.delete(f"/v1/cases/{case_id}", headers=other)).status_code == 404
        assert (await client.get("/v1/cases", headers=other)).json()["data"]["total"] == 0
        assert (await client.get(f"/v1/cases/{case_id}", headers=owner)).status_code == 200


@pytest.mark.asyncio
async def test_case_validation_and_roles() -> None:
    tenant_id = f"t-case-rules-{uuid4().hex}"
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        short = await client.post(
            "/v1/cases", json={**_CASE, "facts_description": "curto"}, headers=_dev_headers(tenant_id)
        )
        assert short.status_code == 422
        assert short.json()["error"]["code"] == "VALIDATION_ERROR"
        assert any("facts_description" in item["field"] for item in short.json()["error"]["details"])

        forbidden = await client.post("/v1/cases", json=_CASE, headers=_dev_headers(tenant_id, role="reader"))
        assert forbidden.status_code == 403
        assert forbidden.json()["error"]["code"] == "FORBIDDEN"

        listed = await client.get("/v1/cases", headers=_dev_headers(tenant_id, role="reader"))
        assert listed.status_code == 200
