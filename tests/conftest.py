"""
tests/conftest.py -- Shared test fixtures for forum API integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + forum content
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: module-scoped ApiContext (TestClient + stores + demo accounts)
  - login / admin_headers: Authorization headers for a user or a 2FA-verified admin
  - totp_code: current code for a base32 secret

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment must be set before any api/auth/core import:
  DEBUG=true            so get_settings() auto-generates SECRET_KEY
  ARGON2_*              cheap Argon2id costs; the real ones take ~100ms per hash
  *_RATE_LIMIT          high enough that a whole module never trips them

Tests authenticate with Authorization: Bearer headers taken from the login
response's cookie. The client's cookie jar is cleared after every login so a
test acting as two users never sends the wrong session by accident.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("ARGON2_PARALLELISM", "1")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("TOTP_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth import totp
from auth.accounts import register_user
from auth.models import Role
from auth.session_store import MemorySessionStore
from auth.sessions import SessionManager
from auth.store import UserStore
from forum.service import ForumService
from forum.store import ForumStore

PASSWORD = "password123"
ADMIN_PASSWORD = "admin123"
# Fixed so tests can compute codes; real admins get generate_secret().
ADMIN_SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"


@dataclass
class ApiContext:
    client: TestClient
    users: UserStore
    forum: ForumStore
    sessions: MemorySessionStore


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, ForumStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'sessions', 'posts').
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    forum_url = f"sqlite:///file:test_forum_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=auth_url), ForumStore(db_url=forum_url)


def _seed_accounts(users: UserStore) -> None:
    """Regular users reza/maryam, admin admin_sara (with secret) and admin_nokey (without)."""
    register_user(users, "reza", PASSWORD)
    register_user(users, "maryam", PASSWORD)
    register_user(users, "admin_sara", ADMIN_PASSWORD, role=Role.admin, totp_secret=ADMIN_SECRET)
    register_user(users, "admin_nokey", ADMIN_PASSWORD, role=Role.admin)


def _patch_lifespan(users: UserStore, forum: ForumStore, session_store: MemorySessionStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = users
        app.state.session_store = session_store
        app.state.sessions = SessionManager(users, session_store)
        app.state.forum_store = forum
        app.state.forum = ForumService(forum)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext backed by fresh stores named after the test module."""
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    users, forum = _make_test_stores(suffix)
    _seed_accounts(users)
    session_store = MemorySessionStore(absolute_ttl=3600, idle_ttl=1800)

    app.router.lifespan_context = _patch_lifespan(users, forum, session_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client=client, users=users, forum=forum, sessions=session_store)

    forum.close()
    users.close()


@pytest.fixture
def client(api: ApiContext) -> TestClient:
    api.client.cookies.clear()
    return api.client


@pytest.fixture
def login(client: TestClient) -> Callable[..., dict[str, str]]:
    """Return login(username, password=PASSWORD) -> Authorization headers."""

    def _login(username: str, password: str = PASSWORD) -> dict[str, str]:
        resp = client.post("/api/sessions", json={"username": username, "password": password})
        assert resp.status_code == 200, f"Login as {username} failed: {resp.text}"
        token = resp.cookies.get("session")
        client.cookies.clear()
        return {"Authorization": f"Bearer {token}"}

    return _login


@pytest.fixture
def admin_headers(client: TestClient, login, totp_code) -> dict[str, str]:
    """Headers for admin_sara after both password and TOTP checks."""
    headers = login("admin_sara", ADMIN_PASSWORD)
    resp = client.post("/api/login-totp", json={"code": totp_code()}, headers=headers)
    assert resp.status_code == 200, f"TOTP upgrade failed: {resp.text}"
    return headers


@pytest.fixture
def totp_code() -> Callable[..., str]:
    """Return totp_code(secret=ADMIN_SECRET) -> the current six-digit code."""

    def _code(secret: str = ADMIN_SECRET) -> str:
        return totp.current_code(totp.decode_secret(secret))

    return _code
