"""
tests/conftest.py -- Shared test fixtures for AuthGate.

This module provides:
  - FakeClock: a settable clock for TokenService / LoginRateLimiter
  - unit fixtures: token_service, user_store, revocation_store, auth_service
  - api_client: TestClient over the real app and lifespan, with a seeded admin

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
':memory:' DBs are per-connection and would present a blank schema to each
worker thread. Unit fixtures run in one thread, so plain ':memory:' is fine.

Environment variables must be set before any api/ or core/ import:
  DEBUG=true            -- get_settings() auto-generates SECRET_KEY
  LOGIN_RATE_CAPACITY   -- large, so the shared login bucket never trips
                           unless a test swaps in a small one on purpose
  CLIENT_RATE_LIMIT     -- large, so slowapi never throttles the suite
  ALLOWED_HOSTS         -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
from collections.abc import Generator

# CRITICAL: set before any core/api import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ["DATABASE_URL"] = "sqlite:///file:test_authgate_api?mode=memory&cache=shared&uri=true"
os.environ["LOGIN_RATE_CAPACITY"] = "1000"
os.environ["CLIENT_RATE_LIMIT"] = "1000/minute"
os.environ["ALLOWED_HOSTS"] = '["testserver", "localhost"]'

import pytest
from fastapi.testclient import TestClient

from auth.limiter import LoginRateLimiter
from auth.models import Role, User
from auth.service import AuthService
from auth.store import RevocationStore, UserStore
from auth.tokens import TokenService, hash_password
from tests.helpers import ADMIN_EMAIL, ADMIN_PASSWORD, TEST_ISSUER, TEST_SECRET, USER_PASSWORD_HASH, FakeClock


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(secret_key=TEST_SECRET, issuer=TEST_ISSUER)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def revocation_store() -> Generator[RevocationStore, None, None]:
    store = RevocationStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def alice(user_store: UserStore) -> User:
    """An active user-role account whose password is USER_PASSWORD."""
    user = User(
        email="alice@example.com",
        hashed_password=USER_PASSWORD_HASH,
        first_name="Alice",
        last_name="Liddell",
    )
    user.id = user_store.create_user(user)
    return user_store.get_by_id(user.id)


@pytest.fixture
def auth_service(user_store: UserStore, revocation_store: RevocationStore, token_service: TokenService) -> AuthService:
    """AuthService over in-memory stores with the standard 5 / 12s login bucket."""
    return AuthService(
        users=user_store,
        revocations=revocation_store,
        tokens=token_service,
        limiter=LoginRateLimiter(capacity=5, refill_seconds=12.0),
    )


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str], None, None]:
    """Yield (client, admin_token) for API integration tests.

    Runs the real lifespan, so stores, token service, login bucket and gate
    are all built exactly as in production. The admin account is seeded
    directly in the store (registration only ever creates role "user") and
    the token is obtained through the real login endpoint.
    """
    from api.main import app

    with TestClient(app, raise_server_exceptions=True) as client:
        # The shared-memory DB may outlive a previous module's client.
        if app.state.user_store.get_by_email(ADMIN_EMAIL) is None:
            app.state.user_store.create_user(
                User(
                    email=ADMIN_EMAIL,
                    hashed_password=hash_password(ADMIN_PASSWORD),
                    first_name="Ada",
                    last_name="Admin",
                    role=Role.admin.value,
                )
            )
        resp = client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        token = resp.json()["token"]
        yield client, token
