"""Integration tests for authentication, role checks and health probes."""
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from journey.api.deps import get_db
from journey.auth.jwt import jwt_auth
from journey.main import app


@pytest_asyncio.fixture
async def bare_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Client with a test database but real token verification."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def bearer(role: str) -> dict[str, str]:
    token = jwt_auth.create_access_token(user_id="op-7", email="op@example.com", role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_missing_token(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/v1/journey/funnel")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_invalid_token(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/v1/journey/funnel", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_analyst_can_read(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/v1/journey/funnel", headers=bearer("Analyst"))

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_analyst_cannot_write(bare_client: AsyncClient) -> None:
    response = await bare_client.post(
        "/v1/journey/reminders",
        json={"user_id": "u1", "intent": "complete_profile"},
        headers=bearer("Analyst"),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_marketing_cannot_delete_templates(bare_client: AsyncClient) -> None:
    response = await bare_client.delete(
        "/v1/email-templates/00000000-0000-0000-0000-000000000000",
        params={"confirm": "true"},
        headers=bearer("Marketing"),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_health(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/health/ready")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"


@pytest.mark.asyncio
async def test_request_id_is_echoed(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/health", headers={"X-Request-ID": "req_abc123"})

    assert response.headers["X-Request-ID"] == "req_abc123"
