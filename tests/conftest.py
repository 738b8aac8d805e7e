"""
tests/conftest.py -- Shared test fixtures for guardian integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for every store
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus admin and user JWTs for API integration tests
  - extension_headers(): valid guardian credential headers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and RATE_LIMIT_ENABLED must be set before any project import:
get_settings() is cached on first call.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set before any auth/core import so get_settings() auto-generates
# SECRET_KEY in dev mode and the login limiter does not trip mid-suite.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from activity.store import ActivityStore
from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from extconfig.store import ConfigStore
from whitelist.store import ExtensionStore

GUARDIAN_ID = "g" * 32
ADMIN_PASSWORD = "Admin@pass1"
USER_PASSWORD = "User@pass1"


def extension_headers(extension_id: str = GUARDIAN_ID) -> dict[str, str]:
    """Headers the guardian extension sends: id plus a key prefixed with it."""
    return {"X-Extension-ID": extension_id, "X-API-Key": f"{extension_id}-dev-key"}


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


@dataclass
class Stores:
    users: UserStore
    extensions: ExtensionStore
    activity: ActivityStore
    config: ConfigStore

    def close(self) -> None:
        self.users.close()
        self.extensions.close()
        self.activity.close()
        self.config.close()


def _make_test_stores(db_suffix: str) -> Stores:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'auth', 'whitelist').
    """

    def url(name: str) -> str:
        return f"sqlite:///file:test_{name}_{db_suffix}?mode=memory&cache=shared&uri=true"

    return Stores(
        users=UserStore(db_url=url("users")),
        extensions=ExtensionStore(db_url=url("extensions")),
        activity=ActivityStore(db_url=url("activity")),
        config=ConfigStore(db_url=url("config")),
    )


def _patch_lifespan(stores: Stores):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = stores.users
        app.state.extension_store = stores.extensions
        app.state.activity_store = stores.activity
        app.state.config_store = stores.config
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    stores: Stores
    admin: User
    admin_token: str
    user: User
    user_token: str


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    One admin and one regular user are created before the client starts.
    Each test module gets its own databases, named after the module.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    stores = _make_test_stores(suffix)

    admin_id = stores.users.create_user(
        User(
            email="admin@example.com",
            name="Test Admin",
            role="admin",
            hashed_password=hash_password(ADMIN_PASSWORD),
        )
    )
    user_id = stores.users.create_user(
        User(
            email="user@example.com",
            name="Test User",
            role="user",
            hashed_password=hash_password(USER_PASSWORD),
        )
    )
    admin = stores.users.get_by_id(admin_id)
    user = stores.users.get_by_id(user_id)

    app.router.lifespan_context = _patch_lifespan(stores)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            stores=stores,
            admin=admin,
            admin_token=create_access_token(admin_id, expire_seconds=3600),
            user=user,
            user_token=create_access_token(user_id, expire_seconds=3600),
        )

    stores.close()


@pytest.fixture(autouse=True)
def _clear_cookies(request) -> None:
    """Drop cookies set by earlier logins so each test starts anonymous."""
    if "api_client" in request.fixturenames:
        request.getfixturevalue("api_client").client.cookies.clear()
