"""Integration tests for managed e-mail template endpoints."""
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journey.models.ab_variant import ABVariant
from journey.models.email_template import TEMPLATE_VARIABLES
from tests.utils.factories import ABVariantFactory, EmailTemplateFactory


async def create_template(client: AsyncClient, **overrides) -> dict:
    response = await client.post("/v1/email-templates", json=EmailTemplateFactory.create(overrides))
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_template(async_client: AsyncClient) -> None:
    template = await create_template(async_client, name="Boas-vindas", journey_stage="signup")

    assert template["name"] == "Boas-vindas"
    assert template["journey_stage"] == "signup"
    assert template["is_active"] is True
    assert template["variables"] == TEMPLATE_VARIABLES
    assert template["unknown_placeholders"] == []


@pytest.mark.asyncio
async def test_unknown_placeholders_are_reported_not_rejected(async_client: AsyncClient) -> None:
    template = await create_template(
        async_client,
        subject="Oi {{ user_name }}",
        html_content="<p>{{coupon_code}} e {{user_name}}</p>",
    )

    assert template["unknown_placeholders"] == ["{{coupon_code}}"]


@pytest.mark.asyncio
async def test_create_template_missing_fields(async_client: AsyncClient) -> None:
    response = await async_client.post("/v1/email-templates", json={"name": "Sem conteúdo"})

    assert response.status_code == 422
    fields = {detail["field"] for detail in response.json()["details"]}
    assert "body.subject" in fields
    assert "body.html_content" in fields


@pytest.mark.asyncio
async def test_create_template_unknown_stage(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/v1/email-templates",
        json=EmailTemplateFactory.create({"journey_stage": "trial"}),
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_templates(async_client: AsyncClient) -> None:
    await create_template(async_client, name="Primeiro")
    await create_template(async_client, name="Segundo")

    response = await async_client.get("/v1/email-templates")

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert {item["name"] for item in body["items"]} == {"Primeiro", "Segundo"}


@pytest.mark.asyncio
async def test_update_template_partial(async_client: AsyncClient) -> None:
    template = await create_template(async_client, name="Original", journey_stage="signup")

    response = await async_client.patch(
        f"/v1/email-templates/{template['id']}",
        json={"name": "Renomeado", "journey_stage": "active", "is_active": False},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Renomeado"
    assert body["journey_stage"] == "active"
    assert body["is_active"] is False
    assert body["subject"] == template["subject"]


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "subject", "html_content", "journey_stage", "is_active"])
async def test_update_rejects_null_for_required_fields(async_client: AsyncClient, field: str) -> None:
    template = await create_template(async_client, name="Original")

    response = await async_client.patch(f"/v1/email-templates/{template['id']}", json={field: None})

    assert response.status_code == 422
    unchanged = await async_client.get(f"/v1/email-templates/{template['id']}")
    assert unchanged.json()[field] == template[field]


@pytest.mark.asyncio
async def test_update_clears_text_content(async_client: AsyncClient) -> None:
    template = await create_template(async_client, text_content="Texto simples")

    response = await async_client.patch(f"/v1/email-templates/{template['id']}", json={"text_content": None})

    assert response.status_code == 200
    assert response.json()["text_content"] is None


@pytest.mark.asyncio
async def test_update_missing_template(async_client: AsyncClient) -> None:
    response = await async_client.patch(
        "/v1/email-templates/00000000-0000-0000-0000-000000000000",
        json={"name": "Nada"},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_requires_confirmation(async_client: AsyncClient) -> None:
    template = await create_template(async_client)

    response = await async_client.delete(f"/v1/email-templates/{template['id']}")

    assert response.status_code == 400
    still_there = await async_client.get(f"/v1/email-templates/{template['id']}")
    assert still_there.status_code == 200


@pytest.mark.asyncio
async def test_delete_removes_variants(async_client: AsyncClient, db_session: AsyncSession) -> None:
    template = await create_template(async_client)
    variant = await async_client.post("/v1/ab-tests/variants", json=ABVariantFactory.create(template["id"]))
    assert variant.status_code == 201

    response = await async_client.delete(f"/v1/email-templates/{template['id']}", params={"confirm": "true"})

    assert response.status_code == 204
    assert (await async_client.get(f"/v1/email-templates/{template['id']}")).status_code == 404
    remaining = (await db_session.execute(select(ABVariant))).scalars().all()
    assert remaining == []


@pytest.mark.asyncio
async def test_preview_returns_raw_html(async_client: AsyncClient) -> None:
    template = await create_template(async_client, html_content="<h1>Olá {{user_name}}</h1>")

    response = await async_client.get(f"/v1/email-templates/{template['id']}/preview")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert response.text == "<h1>Olá {{user_name}}</h1>"
