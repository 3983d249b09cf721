from __future__ import annotations

from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from petichat.apps.api.main import create_app
from petichat.sdk.client import PetichatClient
from petichat.wizard.backends import ApiWizardBackend
from petichat.wizard.session import WizardSession
from petichat.wizard.state import WizardState


def _dev_headers(tenant_id: str, role: str = "admin") -> dict[str, str]:
    return {"X-Tenant-Id": tenant_id, "X-Role": role, "X-User-Id": "lawyer-1"}


async def _ingest_sample(client: AsyncClient, headers: dict[str, str]) -> None:
    response = await client.post("/v1/jobs/ingest-jurisprudence", json={"source": "sample"}, headers=headers)
    assert response.status_code == 202
    assert response.json()["data"]["status"] == "succeeded"


@pytest.mark.asyncio
async def test_facts_to_draft_through_api() -> None:
    headers = _dev_headers(f"t-wizard-{uuid4().hex}")
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await _ingest_sample(client, headers)
        case = (
            await client.post(
                "/v1/cases",
                json={
                    "client_name": "Carla Mendes",
                    "case_type": "consumer",
                    "facts_description": "Nome negativado indevidamente após quitação integral do débito.",
                },
                headers=headers,
            )
        ).json()["data"]

        suggested = await client.post(f"/v1/cases/{case['id']}/theses/suggest", headers=headers)
        assert suggested.status_code == 200
        theses = suggested.json()["data"]["items"]
        assert len(theses) == 4
        assert all(not thesis["selected"] and thesis["ai_generated"] for thesis in theses)

        # Generation refuses to run without a chosen thesis.
        premature = await client.post("/v1/documents/generate", json={"case_id": case["id"]}, headers=headers)
        assert premature.status_code == 422

        chosen = [theses[0]["id"], theses[2]["id"]]
        selection = await client.put(
            f"/v1/cases/{case['id']}/theses/selection", json={"thesis_ids": chosen}, headers=headers
        )
        assert {t["id"] for t in selection.json()["data"]["items"] if t["selected"]} == set(chosen)

        found = await client.get("/v1/jurisprudence", params={"keywords": "dano moral"}, headers=headers)
        precedents = found.json()["data"]["items"]
        assert precedents
        assert precedents[0]["tribunal"] == "STJ"
        citations = await client.put(
            f"/v1/cases/{case['id']}/citations",
            json={"jurisprudence_ids": [precedents[0]["id"]]},
            headers=headers,
        )
        assert citations.status_code == 200
        assert citations.json()["data"]["items"][0]["position"] == 0

        generated = await client.post("/v1/documents/generate", json={"case_id": case["id"]}, headers=headers)
        assert generated.status_code == 201
        document = generated.json()["data"]
        assert document["title"] == "Petição Inicial - Carla Mendes"
        assert document["version"] == 1
        section_types = [section["type"] for section in document["sections"]]
        assert section_types == ["qualification", "facts", "law", "jurisprudence", "claims"]
        assert document["content_html"].startswith("<section><h2>")
        assert precedents[0]["process_number"] in document["content_html"]

        versions = (await client.get(f"/v1/documents/{document['id']}/versions", headers=headers)).json()["data"]
        assert versions["total"] == 1
        assert versions["items"][0]["label"] == "initial"

        refreshed = (await client.get(f"/v1/cases/{case['id']}", headers=headers)).json()["data"]
        assert refreshed["status"] == "active"
        assert {2, 3} <= set(refreshed["completed_steps"])

        regenerated = await client.post(
            "/v1/documents/generate",
            json={"case_id": case["id"], "document_id": document["id"], "include_jurisprudence": False},
            headers=headers,
        )
        assert regenerated.status_code == 201
        assert regenerated.json()["data"]["id"] == document["id"]
        assert regenerated.json()["data"]["version"] == 2
        assert "jurisprudence" not in [s["type"] for s in regenerated.json()["data"]["sections"]]
        history = (await client.get(f"/v1/documents/{document['id']}/versions", headers=headers)).json()["data"]
        assert [item["label"] for item in history["items"]] == ["regenerated", "initial"]


async def _case_ready_to_generate(client: AsyncClient, headers: dict[str, str], client_name: str) -> str:
    case = (
        await client.post(
            "/v1/cases",
            json={
                "client_name": client_name,
                "case_type": "consumer",
                "facts_description": "Cobrança de tarifa bancária não contratada por doze meses.",
            },
            headers=headers,
        )
    ).json()["data"]
    theses = (await client.post(f"/v1/cases/{case['id']}/theses/suggest", headers=headers)).json()["data"]["items"]
    await client.put(
        f"/v1/cases/{case['id']}/theses/selection", json={"thesis_ids": [theses[2]["id"]]}, headers=headers
    )
    return case["id"]


@pytest.mark.asyncio
async def test_regeneration_target_must_belong_to_same_tenant_and_case() -> None:
    headers_a = _dev_headers(f"t-regen-a-{uuid4().hex}")
    headers_b = _dev_headers(f"t-regen-b-{uuid4().hex}")
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        case_a = await _case_ready_to_generate(client, headers_a, "Ana Souza")
        doc_a = (
            await client.post("/v1/documents/generate", json={"case_id": case_a}, headers=headers_a)
        ).json()["data"]
        case_b1 = await _case_ready_to_generate(client, headers_b, "Bruno Lima")
        case_b2 = await _case_ready_to_generate(client, headers_b, "Beatriz Rocha")
        doc_b1 = (
            await client.post("/v1/documents/generate", json={"case_id": case_b1}, headers=headers_b)
        ).json()["data"]

        foreign = await client.post(
            "/v1/documents/generate", json={"case_id": case_b2, "document_id": doc_a["id"]}, headers=headers_b
        )
        unknown = await client.post(
            "/v1/documents/generate", json={"case_id": case_b2, "document_id": "doc-chosen-by-caller"}, headers=headers_b
        )
        other_case = await client.post(
            "/v1/documents/generate", json={"case_id": case_b2, "document_id": doc_b1["id"]}, headers=headers_b
        )
        # A foreign id must be indistinguishable from one that never existed.
        assert foreign.status_code == unknown.status_code == other_case.status_code == 404
        assert foreign.json()["error"]["code"] == unknown.json()["error"]["code"] == "NOT_FOUND"

        assert (await client.get("/v1/documents/doc-chosen-by-caller", headers=headers_b)).status_code == 404
        untouched_a = (await client.get(f"/v1/documents/{doc_a['id']}", headers=headers_a)).json()["data"]
        assert untouched_a["version"] == 1
        untouched_b1 = (await client.get(f"/v1/documents/{doc_b1['id']}", headers=headers_b)).json()["data"]
        assert untouched_b1["case_id"] == case_b1
        assert untouched_b1["version"] == 1

        same_case = await client.post(
            "/v1/documents/generate", json={"case_id": case_b1, "document_id": doc_b1["id"]}, headers=headers_b
        )
        assert same_case.status_code == 201
        assert same_case.json()["data"]["version"] == 2


@pytest.mark.asyncio
async def test_unknown_document_type_is_rejected() -> None:
    headers = _dev_headers(f"t-wizard-type-{uuid4().hex}")
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(
            "/v1/documents/generate",
            json={"case_id": "missing", "document_type": "habeas_data"},
            headers=headers,
        )
        assert response.status_code == 422


@pytest.mark.asyncio
async def test_wizard_session_drives_api_backend() -> None:
    headers = _dev_headers(f"t-wizard-sdk-{uuid4().hex}")
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as raw:
        await _ingest_sample(raw, headers)

    async with PetichatClient(base_url="http://test", headers=headers, transport=transport) as client:
        session = WizardSession(
            ApiWizardBackend(client),
            WizardState(
                client_name="Paulo Lima",
                case_type="consumer",
                facts_description="Cobrança em dobro de tarifa bancária não contratada.",
            ),
        )
        assert await session.advance() is True
        assert session.state.case_id
        assert len(session.state.theses) == 4

        session.toggle_thesis(session.state.theses[1]["id"])
        await session.load_jurisprudence(None, tribunal="TJSP")
        assert [item["tribunal"] for item in session.state.jurisprudences] == ["TJSP"]
        session.toggle_jurisprudence(session.state.jurisprudences[0]["id"])

        assert await session.advance() is True
        assert session.state.error is None
        assert session.state.document_id
        assert "Repetição do indébito" in session.state.document_content

        document = await client.get_document(session.state.document_id)
        assert document["case_id"] == session.state.case_id
