"""
Test configuration and fixtures for Subie.

Provides shared fixtures for unit and integration tests.
"""

import os

# Settings are read on import; point them at test values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-that-is-long-enough-for-hs256")
os.environ.setdefault("ENTITLEMENT_PROVIDER", "none")

import time
from typing import AsyncGenerator
from unittest.mock import patch

import jwt
import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import subie.infrastructure.db.models  # noqa: F401
from subie.config.settings import get_settings
from subie.domain.users import AuthUser
from subie.infrastructure.db.models import UserModel


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
async def engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# =============================================================================
# Identity Fixtures
# =============================================================================

@pytest.fixture
def mock_user_id() -> str:
    return "11111111-1111-1111-1111-111111111111"


@pytest.fixture
def other_user_id() -> str:
    return "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def auth_user(mock_user_id) -> AuthUser:
    return AuthUser(
        id=mock_user_id,
        email="ada@example.com",
        first_name="Ada",
        last_name="Lovelace",
    )


@pytest.fixture
async def user_row(db_session, mock_user_id) -> UserModel:
    """Persisted user matching auth_user."""
    from uuid import UUID

    user = UserModel(
        id=UUID(mock_user_id),
        email="ada@example.com",
        first_name="Ada",
        last_name="Lovelace",
    )
    db_session.add(user)
    await db_session.flush()
    return user


@pytest.fixture
def make_token():
    """Build a Supabase-style HS256 token for a user id."""

    def _make(sub: str, email: str = "ada@example.com", expires_in: int = 3600, **claims) -> str:
        settings = get_settings()
        payload = {
            "sub": sub,
            "email": email,
            "aud": "authenticated",
            "iss": f"{settings.supabase_url}/auth/v1",
            "exp": int(time.time()) + expires_in,
            **claims,
        }
        return jwt.encode(payload, settings.supabase_jwt_secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token, mock_user_id) -> dict:
    token = make_token(
        mock_user_id,
        user_metadata={"full_name": "Ada Lovelace"},
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def no_jwks():
    """Skip the JWKS network lookup; tokens are verified with the HS256 secret."""
    with patch(
        "subie.api.dependencies._decode_with_jwks",
        side_effect=jwt.InvalidTokenError("JWKS disabled in tests"),
    ) as mocked:
        yield mocked


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app(session_factory):
    """FastAPI application wired to the test database."""
    from subie.main import app
    from subie.infrastructure.db.database import get_session

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Synchronous test client (no database access needed)."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async test client sharing the test event loop and database."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
