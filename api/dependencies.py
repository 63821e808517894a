"""
api/dependencies.py -- FastAPI Depends() helpers for project and owner authentication.

A project's backend authenticates with its public id in the URL path and its
secret in the Authorization header:

    POST /api/v1/projects/prjAbCdEfGhIjKl/accounts/signup
    Authorization: Bearer <project secret>

An owner-facing backend authenticates the /owners/{owner_id}/... routes with
the deployment's OWNER_API_KEY in the same header. Those routes do not need
the project secret, so they remain usable after the secret is revoked.

require_tenant() is a plain def so FastAPI runs it in the worker thread pool --
the bcrypt comparison inside authenticate_tenant() must not block the event
loop.

Every failure (no header, malformed header, unknown project, wrong secret,
revoked or deleted project) raises the same UnauthorizedError, which
api/main.py renders as 401. The response never says which check failed.
"""

from __future__ import annotations

import hmac

from fastapi import Request

from core.config import get_settings
from core.errors import UnauthorizedError
from tenants.models import Tenant
from tenants.registry import authenticate_tenant
from tenants.store import TenantStore


def bearer_secret(request: Request) -> str:
    """Extract the secret from an "Authorization: Bearer <secret>" header."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise UnauthorizedError("Authorization header missing or invalid.")
    secret = auth_header[7:].strip()
    if not secret:
        raise UnauthorizedError("Authorization header missing or invalid.")
    return secret


def require_tenant(project_id: str, request: Request) -> Tenant:
    """Authenticate the calling project.

    Use as a FastAPI dependency on routes with a {project_id} path segment:
        @router.post("/projects/{project_id}/...")
        def route(tenant: Tenant = Depends(require_tenant)): ...
    """
    secret = bearer_secret(request)
    return authenticate_tenant(get_tenant_store(request), project_id, secret)


def require_owner(owner_id: str, request: Request) -> str:
    """Authenticate an owner-scoped call and return the owner id from the path.

    The key is compared with hmac.compare_digest. An unset OWNER_API_KEY
    rejects every call.
    """
    presented = bearer_secret(request)
    expected = get_settings().owner_api_key
    if not expected or not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError("Invalid owner credentials.")
    return owner_id


def get_tenant_store(request: Request) -> TenantStore:
    return request.app.state.tenant_store
