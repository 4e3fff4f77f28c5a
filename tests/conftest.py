"""
tests/conftest.py -- Shared test fixtures for userauth.

This module provides:
  - FakeClock / clock: an injectable, manually advanced UTC clock
  - auth_config: AuthConfig with bcrypt at its minimum cost (4 rounds)
  - store / service: an isolated in-memory UserStore and the AuthService on it
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

DEBUG must be set before any api/ or core/ import so get_settings()
auto-generates SECRET_KEY instead of raising ValueError. Rate limiting is
switched off so the suite can register and log in as often as it needs;
test_rate_limits.py switches it back on one test at a time.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set before any api/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import AuthConfig
from auth.service import AuthService, build_auth_service
from auth.store import UserStore

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"


class FakeClock:
    """Callable clock frozen at a fixed instant until advance() is called."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(
        secret_key=TEST_SECRET,
        token_ttl_seconds=3600,
        issuer="userauth-test",
        bcrypt_rounds=4,
    )


@pytest.fixture
def store(clock: FakeClock) -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:", clock=clock)
    yield s
    s.close()


@pytest.fixture
def service(store: UserStore, auth_config: AuthConfig, clock: FakeClock) -> AuthService:
    return build_auth_service(store, auth_config, clock=clock)


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, service: AuthService):
    """Return a lifespan that wires test collaborators into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, AuthService, AuthConfig], None, None]:
    """Yield (client, service, config) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but use an isolated in-memory store and fast
    bcrypt. The service runs on the wall clock; tests that need a token from
    the past craft one with auth.tokens.encode_token().
    """
    config = AuthConfig(
        secret_key=TEST_SECRET,
        token_ttl_seconds=3600,
        issuer="userauth-test",
        bcrypt_rounds=4,
    )
    user_store = UserStore("sqlite:///file:test_userauth_api?mode=memory&cache=shared&uri=true")
    service = build_auth_service(user_store, config)

    app.router.lifespan_context = _patch_lifespan(user_store, service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, service, config

    user_store.close()
