"""Tests for the application shell: health, root info, headers, errors."""

import json
from unittest.mock import MagicMock

import pytest

from app.main import cipher_error_handler
from app.services.encryption import AuthenticationFailure


@pytest.mark.asyncio
async def test_health_check(client):
    """Test that health endpoint returns healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_root(client):
    """Test that root endpoint returns API info."""
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "MedLocker API"
    assert "version" in data


@pytest.mark.asyncio
async def test_security_headers(client):
    response = await client.get("/health")
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_cipher_errors_hide_details():
    """Encryption failures map to a generic 500 without the exception text."""
    request = MagicMock()
    request.method = "GET"
    request.url.path = "/records/1"

    response = await cipher_error_handler(request, AuthenticationFailure("tag mismatch for key"))

    assert response.status_code == 500
    body = json.loads(response.body)
    assert body == {"detail": "Unable to process encrypted data"}
    assert "tag" not in response.body.decode()
