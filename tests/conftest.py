"""Shared test fixtures."""

import os

# Settings are read at import time; give them test values before src.* loads.
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-123")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.main import app  # noqa: E402


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def override():
    """Register ``app.dependency_overrides`` for one test and clear them afterwards."""

    def _set(dependency, replacement) -> None:  # type: ignore[no-untyped-def]
        app.dependency_overrides[dependency] = replacement

    yield _set
    app.dependency_overrides.clear()
