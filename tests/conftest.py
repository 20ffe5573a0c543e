"""
tests/conftest.py -- Shared test fixtures for the API integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for auth + shop
  - _patch_lifespan(): wires test stores and a CookiePolicy into app.state,
    bypassing real startup
  - api_client: TestClient (development cookie policy) with an admin JWT
  - prod_client: TestClient whose cookie policy runs in production mode

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.

Environment variables must be set before any api/auth/core import: Settings
is read when api.main builds its middleware stack.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before importing the app so get_settings() sees them.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.cookies import CookiePolicy
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.config import DeploymentMode, get_settings
from shop.store import ShopStore

ADMIN_EMAIL = "admin@mail.com"
ADMIN_PASSWORD = "adminpass123"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, ShopStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so fixtures don't
                   share state (e.g. 'api', 'prod').
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    shop_url = f"sqlite:///file:test_shop_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=auth_url), ShopStore(db_url=shop_url)


def _patch_lifespan(user_store: UserStore, shop: ShopStore, mode: DeploymentMode):
    """Return an async context manager that replaces the real lifespan.

    The cookie policy is built for the requested mode directly, so production
    cookie behaviour is testable without touching the process environment.
    The purge_task is a long-sleeping coroutine (a real asyncio.Task is
    required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.settings = settings
        app.state.cookie_policy = CookiePolicy(
            mode=mode,
            max_age_millis=settings.refresh_token_expire_seconds * 1000,
        )
        app.state.user_store = user_store
        app.state.shop = shop
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def _create_admin(user_store: UserStore) -> str:
    return user_store.create_user(
        User(
            name="Admin",
            email=ADMIN_EMAIL,
            hashed_password=hash_password(ADMIN_PASSWORD),
            role="admin",
        )
    )


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    Uses the development cookie policy (not Secure, SameSite=lax) so the
    TestClient cookie jar sends the refresh cookie back over http://testserver.
    Each test module gets its own databases.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, shop = _make_test_stores(f"api_{suffix}")
    uid = _create_admin(user_store)
    token = create_access_token(uid, "admin")

    app.router.lifespan_context = _patch_lifespan(user_store, shop, DeploymentMode.development)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, uid

    user_store.close()
    shop.close()


@pytest.fixture(scope="module")
def prod_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient whose refresh cookie policy runs in production mode."""
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, shop = _make_test_stores(f"prod_{suffix}")
    _create_admin(user_store)

    app.router.lifespan_context = _patch_lifespan(user_store, shop, DeploymentMode.production)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    user_store.close()
    shop.close()


# ---------------------------------------------------------------------------
# Helpers shared by route tests
# ---------------------------------------------------------------------------


def signup_user(client: TestClient, email: str, name: str = "Test User", password: str = "password123") -> dict:
    """Sign a user up through the API and return the JSON body."""
    resp = client.post("/api/v1/auth/signup", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def parse_set_cookie(header: str) -> tuple[str, str, dict[str, str]]:
    """Split a Set-Cookie header into (name, value, {lowercased attr: value})."""
    first, *rest = [part.strip() for part in header.split(";")]
    name, _, value = first.partition("=")
    attrs: dict[str, str] = {}
    for part in rest:
        key, _, val = part.partition("=")
        attrs[key.lower()] = val
    return name, value, attrs
