from __future__ import annotations

from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update

from petichat.apps.api.main import create_app
from petichat.domain.models import Template
from petichat.persistence.db import SessionLocal
from petichat.services.templates import default_templates, ensure_default_templates


@pytest.mark.asyncio
async def test_seeding_is_idempotent() -> None:
    async with SessionLocal() as session:
        first = await ensure_default_templates(session)
        second = await ensure_default_templates(session)
    assert first == len(default_templates())
    assert second == 0


@pytest.mark.asyncio
async def test_catalogue_lists_popular_first_and_hides_inactive() -> None:
    headers = {"X-Tenant-Id": f"t-templates-{uuid4().hex}", "X-Role": "reader", "X-User-Id": "intern-2"}
    async with SessionLocal() as session:
        await ensure_default_templates(session)
        await session.execute(update(Template).where(Template.name == "Pedido de Informações").values(is_active=False))
        await session.commit()

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/v1/templates", headers=headers)
        assert response.status_code == 200
        items = response.json()["data"]["items"]
        names = [item["name"] for item in items]
        assert "Pedido de Informações" not in names
        assert len(items) == len(default_templates()) - 1

        flags = [item["is_popular"] for item in items]
        assert flags == sorted(flags, reverse=True)
        popular = [item for item in items if item["is_popular"]]
        assert [(t["category"], t["name"]) for t in popular] == sorted((t["category"], t["name"]) for t in popular)

        habeas = next(item for item in items if item["name"] == "Habeas Corpus")
        assert habeas["structure"]["sections"][0] == "autoridade_coatora"
        assert habeas["area"] == "Direito Penal"

        penal = (await client.get("/v1/templates", params={"category": "Penal"}, headers=headers)).json()["data"]
        assert [item["name"] for item in penal["items"]] == ["Habeas Corpus", "Resposta à Acusação"]
