"""Pytest configuration and shared fixtures.

This module provides centralized test fixtures for:
- Cipher engines with fixed test keys
- HTTP client for API testing
- Mocked async database sessions
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.main import app
from app.services.encryption import CipherEngine

TEST_KEY = bytes(range(32))
OTHER_KEY = bytes(range(32, 64))


# =============================================================================
# Cipher Fixtures
# =============================================================================


@pytest.fixture
def cipher() -> CipherEngine:
    """Cipher engine keyed with a fixed test key."""
    return CipherEngine(TEST_KEY)


@pytest.fixture
def other_cipher() -> CipherEngine:
    """Cipher engine with a different key, for wrong-key scenarios."""
    return CipherEngine(OTHER_KEY)


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client():
    """Async test client for the FastAPI app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Database Fixtures
# =============================================================================


def _make_result(scalar=None, rows=None) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = rows or []
    return result


@pytest.fixture
def make_result():
    """Factory for mock SQLAlchemy results.

    ``scalar`` is returned by ``scalar_one_or_none()``, ``rows`` by
    ``scalars().all()``.
    """
    return _make_result


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async session mock; ``execute`` returns an empty result by default."""
    db = AsyncMock(spec=AsyncSession)
    db.execute.return_value = _make_result()
    return db
