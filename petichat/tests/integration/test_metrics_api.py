from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update

from petichat.apps.api.main import create_app
from petichat.domain.models import LegalDocument
from petichat.persistence.db import SessionLocal


async def _create_case(client: AsyncClient, headers: dict[str, str], client_name: str = "Lucas Prado") -> str:
    response = await client.post(
        "/v1/cases",
        json={
            "client_name": client_name,
            "case_type": "tax",
            "facts_description": "Autuação fiscal lavrada sem intimação prévia do contribuinte.",
        },
        headers=headers,
    )
    return response.json()["data"]["id"]


@pytest.mark.asyncio
async def test_summary_counts_tenant_activity() -> None:
    headers = {"X-Tenant-Id": f"t-metrics-{uuid4().hex}", "X-Role": "editor", "X-User-Id": "lawyer-5"}
    other = {"X-Tenant-Id": f"t-metrics-other-{uuid4().hex}", "X-Role": "reader"}
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        case_id = await _create_case(client, headers)
        await client.post("/v1/documents", json={"case_id": case_id, "title": "Mandado de Segurança"}, headers=headers)

        summary = await client.get("/v1/metrics/summary", headers=headers)
        assert summary.status_code == 200
        data = summary.json()["data"]
        assert data["total_cases"] == 1
        assert data["total_documents"] == 1
        assert data["counts_by_event_type"].get("document_created") == 1
        assert "process" not in data

        foreign = (await client.get("/v1/metrics/summary", headers=other)).json()["data"]
        assert foreign["total_cases"] == 0
        assert foreign["counts_by_event_type"] == {}


@pytest.mark.asyncio
async def test_process_metrics_are_admin_only_and_count_ai_calls() -> None:
    tenant_id = f"t-metrics-process-{uuid4().hex}"
    editor = {"X-Tenant-Id": tenant_id, "X-Role": "editor", "X-User-Id": "lawyer-5"}
    admin = {"X-Tenant-Id": tenant_id, "X-Role": "admin", "X-User-Id": "partner-1"}
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        forbidden = await client.get("/v1/metrics/process", headers=editor)
        assert forbidden.status_code == 403
        reader = await client.get("/v1/metrics/process", headers={**editor, "X-Role": "reader"})
        assert reader.status_code == 403

        proposed = await client.post(
            "/v1/editor/actions", json={"action": "formalize", "text": "O réu não pagou."}, headers=editor
        )
        action_id = proposed.json()["data"]["action_id"]
        await client.post(f"/v1/editor/actions/{action_id}/discard", headers=editor)

        process = await client.get("/v1/metrics/process", headers=admin)
        assert process.status_code == 200
        data = process.json()["data"]
        assert data["window_s"] == 300
        assert set(data["queue_depths"]) == {"generate_document", "ingest_jurisprudence", "generate_embeddings"}
        assert all(depth == 0 for depth in data["queue_depths"].values())
        assert data["counters"]["ai_calls_total"] == 1
        assert data["counters"]["inline_actions_discarded_total"] == 1


@pytest.mark.asyncio
async def test_dashboard_breaks_down_tenant_activity() -> None:
    headers = {"X-Tenant-Id": f"t-dashboard-{uuid4().hex}", "X-Role": "editor", "X-User-Id": "lawyer-6"}
    other = {"X-Tenant-Id": f"t-dashboard-other-{uuid4().hex}", "X-Role": "reader"}
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        case_id = await _create_case(client, headers, client_name="Beatriz Nunes")
        created = []
        for title, document_type in (
            ("Petição antiga", "petition"),
            ("Petição nova", "petition"),
            ("Contestação", "contestation"),
        ):
            response = await client.post(
                "/v1/documents",
                json={"case_id": case_id, "title": title, "document_type": document_type},
                headers=headers,
            )
            created.append(response.json()["data"]["id"])
        async with SessionLocal() as session:
            await session.execute(
                update(LegalDocument)
                .where(LegalDocument.id == created[0])
                .values(created_at=datetime.now(timezone.utc) - timedelta(days=60))
            )
            await session.commit()

        proposed = (
            await client.post(
                "/v1/editor/actions", json={"action": "formalize", "text": "O réu não pagou."}, headers=headers
            )
        ).json()["data"]

        response = await client.get("/v1/metrics/dashboard", headers=headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["overview"] == {
            "total_cases": 1,
            "total_documents": 3,
            "documents_last_30_days": 2,
            "time_saved_minutes": 360,
            "time_saved_formatted": "6h 0min",
        }
        assert data["documents_by_type"] == [
            {"type": "petition", "label": "Petição Inicial", "count": 2},
            {"type": "contestation", "label": "Contestação", "count": 1},
        ]
        expected_tokens = (len(proposed["original"]) + len(proposed["result"])) // 4
        assert data["ai_usage"] == {"calls_last_7_days": 1, "tokens_used": expected_tokens}
        recent = data["recent_documents"]
        assert len(recent) == 3
        assert {item["client_name"] for item in recent} == {"Beatriz Nunes"}
        # The back-dated draft is the oldest one.
        assert recent[-1]["id"] == created[0]

        foreign = (await client.get("/v1/metrics/dashboard", headers=other)).json()["data"]
        assert foreign["overview"]["total_documents"] == 0
        assert foreign["documents_by_type"] == []
        assert foreign["ai_usage"] == {"calls_last_7_days": 0, "tokens_used": 0}
        assert foreign["recent_documents"] == []


@pytest.mark.asyncio
async def test_track_records_client_events_but_not_server_ones() -> None:
    headers = {"X-Tenant-Id": f"t-track-{uuid4().hex}", "X-Role": "reader", "X-User-Id": "intern-1"}
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        tracked = await client.post(
            "/v1/metrics/track",
            json={"event_type": "template_viewed", "metadata": {"template": "Habeas Corpus"}},
            headers=headers,
        )
        assert tracked.status_code == 201
        assert tracked.json()["data"] == {"tracked": True, "event_type": "template_viewed"}

        forged = await client.post("/v1/metrics/track", json={"event_type": "document_created"}, headers=headers)
        assert forged.status_code == 422
        assert forged.json()["error"]["code"] == "VALIDATION_ERROR"

        malformed = await client.post("/v1/metrics/track", json={"event_type": "Visualizou Modelo"}, headers=headers)
        assert malformed.status_code == 422
        empty = await client.post("/v1/metrics/track", json={"event_type": ""}, headers=headers)
        assert empty.status_code == 422

        counts = (await client.get("/v1/metrics/summary", headers=headers)).json()["data"]["counts_by_event_type"]
        assert counts == {"template_viewed": 1}
