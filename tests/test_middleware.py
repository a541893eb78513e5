"""Middleware tests: request ID, IP rate limiting, CORS, error handling."""

import pytest
from httpx import AsyncClient

from tests.conftest import USER_A, auth_headers


@pytest.fixture
def ip_limited(fake_redis, monkeypatch):
    monkeypatch.setattr("copet.middleware.rate_limit.get_redis", lambda: fake_redis)
    return fake_redis


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_rate_limit_headers(client: AsyncClient, ip_limited) -> None:
    response = await client.get("/api/v1/games")
    assert response.headers["x-ratelimit-limit"] == "100"
    assert response.headers["x-ratelimit-remaining"] == "99"


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(client: AsyncClient, ip_limited) -> None:
    """101st request in a window returns 429 with Retry-After."""
    for _ in range(100):
        await client.get("/api/v1/games")
    response = await client.get("/api/v1/games")
    assert response.status_code == 429
    assert "retry-after" in response.headers
    assert response.json()["detail"]["code"] == "RATE_LIMIT_EXCEEDED"


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(client: AsyncClient, ip_limited) -> None:
    for _ in range(150):
        response = await client.get("/health")
        assert response.status_code == 200
    assert ip_limited.store == {}


@pytest.mark.asyncio
async def test_no_redis_means_no_ip_limit(client: AsyncClient) -> None:
    response = await client.get("/api/v1/games")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    """Unknown paths return 404 with JSON body."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.headers["content-type"] == "application/json"
    assert response.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_validation_errors_return_json(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/games/sessions", json={"game_type": "tap-pet"}, headers=auth_headers(USER_A),
    )
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert data["errors"][0]["loc"][-1] == "pet_id"
