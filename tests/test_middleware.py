"""Middleware tests: request ID, error format, CORS."""

import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_unthrottled_without_redis(client: AsyncClient) -> None:
    for _ in range(120):
        response = await client.get("/version")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_domain_error_body(client: AsyncClient) -> None:
    """Domain errors carry a message and a machine-readable code."""
    response = await client.get("/api/v1/habits/999", headers=auth_headers())
    assert response.status_code == 404
    assert response.json() == {"detail": "Habit not found", "code": "not_found"}


@pytest.mark.asyncio
async def test_validation_error_body(client: AsyncClient) -> None:
    response = await client.post("/api/v1/habits", json={"name": "Run"}, headers=auth_headers())
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert any(err["loc"][-1] == "category" for err in data["errors"])


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert "access-control-allow-origin" in response.headers
