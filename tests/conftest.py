"""
tests/conftest.py -- Shared test fixtures for the account service.

This module provides:
  - make_store(): isolated named shared-memory SQLite UserStore
  - issuer / store / service / guard: domain objects for unit tests
  - api_client: TestClient over the real app with a patched lifespan
  - register(): helper that registers through the HTTP API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

The DEBUG env var must be set before any core/auth/api import so
get_settings() auto-generates SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import timedelta

# CRITICAL: Set DEBUG before any project import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.guard import AccessGuard
from auth.service import CredentialService
from auth.store import UserStore
from auth.tokens import AuthConfig, TokenIssuer

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"


def make_store() -> UserStore:
    """Create a UserStore on its own named in-memory database."""
    return UserStore(db_url=f"sqlite:///file:test_accounts_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


def make_issuer(ttl: timedelta = timedelta(days=7), secret: str = TEST_SECRET) -> TokenIssuer:
    return TokenIssuer(AuthConfig(secret_key=secret, token_ttl=ttl))


# ---------------------------------------------------------------------------
# Unit-level fixtures -- fresh state per test
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    user_store = make_store()
    yield user_store
    user_store.close()


@pytest.fixture
def issuer() -> TokenIssuer:
    return make_issuer()


@pytest.fixture
def service(store: UserStore, issuer: TokenIssuer) -> CredentialService:
    return CredentialService(store, issuer)


@pytest.fixture
def guard(store: UserStore, issuer: TokenIssuer) -> AccessGuard:
    return AccessGuard(store, issuer)


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, token_issuer: TokenIssuer):
    """Return a lifespan that wires test objects into app.state instead of the real ones."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.credential_service = CredentialService(user_store, token_issuer)
        app.state.access_guard = AccessGuard(user_store, token_issuer)
        yield

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app backed by an empty in-memory store.

    Function-scoped: every test starts with no accounts, so tests can reuse
    the same example emails without colliding.
    """
    user_store = make_store()
    app.router.lifespan_context = _patch_lifespan(user_store, make_issuer())
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
    user_store.close()


def register(client: TestClient, name: str = "Ann", email: str = "ann@x.com", password: str = "secret1", **extra):
    """POST /register and return the response."""
    body = {"name": name, "email": email, "password": password, **extra}
    return client.post("/api/v1/auth/register", json=body)


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
