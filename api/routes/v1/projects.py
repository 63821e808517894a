"""
api/routes/v1/projects.py -- Project (tenant) registration and credential management.

Routes:
  POST   /api/v1/projects                          -- register; returns secret ONCE
  GET    /api/v1/projects/{project_id}             -- project view (requires project auth)
  GET    /api/v1/projects/{project_id}/providers   -- enabled login methods (requires project auth)
  POST   /api/v1/projects/{project_id}/secret/rotate  -- new secret, shown ONCE
  POST   /api/v1/projects/{project_id}/secret/revoke  -- 204; project can no longer authenticate
                                                 (the owner restores it via /owners/.../secret/rotate)
  DELETE /api/v1/projects/{project_id}             -- 204; soft delete

Security:
  POST /projects is rate-limited per client IP.
  Responses carrying a project secret send Cache-Control: no-store.
  The secret hash never leaves the store; ProjectResponse has no field for it.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.dependencies import require_tenant
from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import (
    AuthMethodsModel,
    ProjectCreate,
    ProjectCreatedResponse,
    ProjectCredentials,
    ProjectResponse,
    ProvidersResponse,
    SocialLoginModel,
)
from core.errors import ValidationError
from tenants.models import Tenant
from tenants.registry import register_tenant, revoke_credentials, rotate_secret, soft_delete
from tenants.store import TenantStore

# Auth policy:
# - POST   /projects:                        public, rate-limited
# - every /projects/{project_id}/... route:  require_tenant (Bearer project secret)
router = APIRouter()


@limiter.limit(AUTH_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/projects", response_model=ProjectCreatedResponse, status_code=201)
def create_project(request: Request, body: ProjectCreate) -> JSONResponse:
    """Register a project and return its credentials.

    The plaintext secret appears in this response and nowhere else, ever.
    Runs as a sync handler so bcrypt executes in the thread pool.
    """
    tenant_store: TenantStore = request.app.state.tenant_store
    try:
        policy = body.settings.to_policy()
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    tenant, secret = register_tenant(tenant_store, body.owner_id, body.details.to_profile(), policy)
    resp = JSONResponse(
        status_code=201,
        content=ProjectCreatedResponse(
            project=ProjectResponse.from_tenant(tenant),
            credentials=ProjectCredentials(project_id=tenant.tenant_id, project_secret=secret),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/projects/{project_id}", response_model=ProjectResponse)
def get_project(tenant: Tenant = Depends(require_tenant)) -> ProjectResponse:
    return ProjectResponse.from_tenant(tenant)


@router.get("/projects/{project_id}/providers", response_model=ProvidersResponse)
def list_providers(tenant: Tenant = Depends(require_tenant)) -> ProvidersResponse:
    """Return which identifiers and social providers the project has switched on.

    Social flags are informational -- no social login flow is served here.
    """
    methods = tenant.policy.auth_methods
    social = tenant.policy.social_login
    return ProvidersResponse(
        auth_methods=AuthMethodsModel(email=methods.email, username=methods.username),
        social_login=SocialLoginModel(google=social.google, github=social.github),
    )


@router.post("/projects/{project_id}/secret/rotate", response_model=ProjectCredentials)
def rotate_project_secret(request: Request, tenant: Tenant = Depends(require_tenant)) -> JSONResponse:
    """Replace the project secret. The secret used to authenticate this call stops working."""
    tenant_store: TenantStore = request.app.state.tenant_store
    secret = rotate_secret(tenant_store, tenant)
    resp = JSONResponse(
        content=ProjectCredentials(project_id=tenant.tenant_id, project_secret=secret).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/projects/{project_id}/secret/revoke", status_code=204)
def revoke_project_secret(request: Request, tenant: Tenant = Depends(require_tenant)) -> Response:
    """Revoke the project's credentials. All later calls with any secret get 401."""
    tenant_store: TenantStore = request.app.state.tenant_store
    revoke_credentials(tenant_store, tenant)
    return Response(status_code=204)


@router.delete("/projects/{project_id}", status_code=204)
def delete_project(request: Request, tenant: Tenant = Depends(require_tenant)) -> Response:
    """Soft-delete the project. Its accounts stay in the store but it can no longer authenticate."""
    tenant_store: TenantStore = request.app.state.tenant_store
    soft_delete(tenant_store, tenant)
    return Response(status_code=204)
