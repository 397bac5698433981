"""Tests for app-level behavior: health checks, envelopes and headers."""

import pytest


@pytest.mark.asyncio
async def test_health_endpoints(client):
    response = await client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"ok": True}

    response = await client.get("/readyz")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_security_headers(client):
    response = await client.get("/healthz")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


@pytest.mark.asyncio
async def test_unknown_route_uses_failure_envelope(client):
    response = await client.get("/api/v1/nothing-here")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["statusCode"] == 404


@pytest.mark.asyncio
async def test_validation_errors_are_400(client, auth, make_user):
    user = await make_user()

    response = await client.post(
        "/api/v1/users/change-password", json={"oldPassword": "x"}, headers=auth(user)
    )

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid request"
    assert any("newPassword" in err["field"] for err in body["errors"])
