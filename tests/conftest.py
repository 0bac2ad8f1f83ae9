"""
tests/conftest.py -- Shared test fixtures for OAuthDash integration tests.

This module provides:
  - make_test_store(): creates an isolated in-memory user DB
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - web: a WebHarness (TestClient + mocked GitHub client + stores)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG and the GitHub credentials must be set before any app import so
get_settings() builds without raising.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from unittest.mock import MagicMock

# CRITICAL: Set env before any api/core import so get_settings() can
# auto-generate SECRET_KEY and find OAuth credentials.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("GH_BASIC_CLIENT_ID", "test-client-id")
os.environ.setdefault("GH_BASIC_SECRET_ID", "test-client-secret")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.oauth import GitHubClient
from auth.policy import RevocationPolicy
from auth.session import SessionStore
from auth.store import UserStore

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_store() -> UserStore:
    """Create a UserStore on a uniquely named shared-memory SQLite DB."""
    return UserStore(db_url=f"sqlite:///file:test_users_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


def make_provider() -> MagicMock:
    """A GitHubClient stand-in. Tests set return values per operation."""
    provider = MagicMock(spec=GitHubClient)
    provider.client_id = "test-client-id"
    provider.authorize_url = "https://github.com/login/oauth/authorize"
    provider.scope = "user:email"
    return provider


def _patch_lifespan(user_store: UserStore, sessions: SessionStore, provider: MagicMock):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.session_store = sessions
        app.state.policy = RevocationPolicy(sessions)
        app.state.provider = provider
        yield

    return test_lifespan


@dataclass
class WebHarness:
    client: TestClient
    provider: MagicMock
    sessions: SessionStore
    users: UserStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = make_test_store()
    yield store
    store.close()


@pytest.fixture
def web(user_store: UserStore) -> Generator[WebHarness, None, None]:
    """Yield a WebHarness around the real app with a mocked GitHub client.

    follow_redirects=False is essential: we assert on redirect locations,
    which are invisible once the client follows the redirect.
    """
    sessions = SessionStore()
    provider = make_provider()
    app.router.lifespan_context = _patch_lifespan(user_store, sessions, provider)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield WebHarness(client=client, provider=provider, sessions=sessions, users=user_store)
