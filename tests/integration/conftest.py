"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.nb_gateway.auth.jwt_handler import create_access_token


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client, keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def new_user():
    """Factory: a fresh user id and the Authorization header for it."""

    def _make() -> tuple[str, dict[str, str]]:
        user_id = str(uuid.uuid4())
        token = create_access_token(user_id, email=f"{user_id[:8]}@example.com")
        return user_id, {"Authorization": f"Bearer {token}"}

    return _make
