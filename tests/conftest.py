"""Pytest configuration and fixtures."""

import os
import time
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", "test-signing-key-jwk")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_webhook_secret")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("CLIENT_URL", "http://localhost:5173")

BUYER_ID = "550e8400-e29b-41d4-a716-446655440000"
ADMIN_ID = "990e8400-e29b-41d4-a716-446655440000"


@pytest.fixture(scope="session")
def signing_key() -> ec.EllipticCurvePrivateKey:
    """EC P-256 key pair standing in for the Supabase signing key."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def make_token(signing_key: ec.EllipticCurvePrivateKey) -> Generator[Callable[..., str], None, None]:
    """Factory for ES256 access tokens verified against the test key.

    Yields:
        Callable: make_token(sub=..., role=..., exp_offset=...) -> token.
    """

    def _make(
        sub: str = BUYER_ID,
        email: str | None = "buyer@example.com",
        app_role: str | None = None,
        exp_offset: int = 3600,
        **claims: Any,
    ) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "sub": sub,
            "email": email,
            "role": "authenticated",
            "aud": "authenticated",
            "iss": "https://test-project.supabase.co/auth/v1",
            "exp": now + exp_offset,
            "iat": now,
            "app_metadata": {"role": app_role} if app_role else {},
            **claims,
        }
        return jwt.encode(payload, signing_key, algorithm="ES256")

    with patch("src.api.middleware.auth.get_signing_key", return_value=signing_key.public_key()):
        yield _make


@pytest.fixture
def buyer_headers(make_token: Callable[..., str]) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def admin_headers(make_token: Callable[..., str]) -> dict[str, str]:
    token = make_token(sub=ADMIN_ID, email="admin@example.com", app_role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    # Configure default mock responses
    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Redis startup and shutdown are mocked so tests never need a server.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with patch("src.main.init_redis", new=AsyncMock()), \
         patch("src.main.shutdown_redis", new=AsyncMock()), \
         TestClient(app) as test_client:
        yield test_client

