"""
tests/conftest.py -- Shared test fixtures for TenantGate.

This module provides:
  - tenant_store / account_store: isolated in-memory stores for unit tests
  - make_tenant: registers a tenant and returns (tenant, secret)
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient over the real app with isolated stores
  - owner_headers: Authorization header carrying the configured owner key

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool, and because the
tenant and account stores open separate engines on the same database. Plain
:memory: DBs are per-connection and would present a blank schema to each.

The environment must be set before any project import: get_settings() is
cached on first call, and auth.vault computes its timing dummy hash at import
with the configured bcrypt cost.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any project import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-0123456789abcdef0123456789")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret-0123456789abcdef012345678")
os.environ.setdefault("AUTH_RATE_LIMIT", "1000/minute")
os.environ.setdefault("OWNER_API_KEY", "test-owner-key-0123456789abcdef0123456789ab")

import pytest
from fastapi.testclient import TestClient

from accounts.store import AccountStore
from api.main import app
from tenants.models import TenantPolicy, TenantProfile
from tenants.registry import register_tenant
from tenants.store import TenantStore


def _memory_url(name: str) -> str:
    return f"sqlite:///file:{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Store fixtures -- one fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url() -> str:
    return _memory_url("test_db")


@pytest.fixture
def tenant_store(db_url: str) -> Generator[TenantStore, None, None]:
    store = TenantStore(db_url)
    yield store
    store.close()


@pytest.fixture
def account_store(db_url: str) -> Generator[AccountStore, None, None]:
    store = AccountStore(db_url)
    yield store
    store.close()


@pytest.fixture
def make_tenant(tenant_store: TenantStore):
    """Factory: make_tenant(name="acme", policy=None) -> (tenant, secret)."""

    def _make(name: str = "acme", policy: TenantPolicy | None = None, owner_id: str = "owner-1"):
        return register_tenant(tenant_store, owner_id, TenantProfile(name=name), policy)

    return _make


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(tenant_store: TenantStore, account_store: AccountStore):
    """Return an async context manager that replaces the real lifespan.

    The sweep_task is a long-sleeping coroutine so shutdown can .cancel() it
    exactly as it would the real sweep.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.tenant_store = tenant_store
        app.state.account_store = account_store
        app.state.sweep_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.sweep_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated in-memory stores.

    Module-scoped for speed; tests register their own projects so they do
    not depend on one another's state.
    """
    url = _memory_url("test_api")
    tenant_store = TenantStore(url)
    account_store = AccountStore(url)
    app.router.lifespan_context = _patch_lifespan(tenant_store, account_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    account_store.close()
    tenant_store.close()


@pytest.fixture
def project(api_client: TestClient) -> tuple[str, dict[str, str]]:
    """Register a project over HTTP; return (project_id, auth headers)."""
    resp = api_client.post(
        "/api/v1/projects",
        json={
            "owner_id": "owner-1",
            "details": {"name": "acme"},
            "settings": {
                "roles": [{"name": "user"}, {"name": "admin", "permissions": ["*"]}],
                "auth_methods": {"email": True, "username": True},
                "password_policy": {"min_length": 8, "require_digit": True},
            },
        },
    )
    assert resp.status_code == 201, resp.text
    creds = resp.json()["credentials"]
    return creds["project_id"], {"Authorization": f"Bearer {creds['project_secret']}"}


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {os.environ['OWNER_API_KEY']}"}
