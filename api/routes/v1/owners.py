"""
api/routes/v1/owners.py -- Owner-scoped project administration.

Routes (all require the owner key via require_owner):
  GET  /api/v1/owners/{owner_id}/projects                                -- owner's live projects
  POST /api/v1/owners/{owner_id}/projects/{project_id}/secret/rotate     -- new secret, shown ONCE
  POST /api/v1/owners/{owner_id}/projects/{project_id}/status            -- activate / deactivate

Security:
  These routes never ask for the project secret, so an owner can recover a
  project whose secret was revoked or lost.
  A project of another owner answers 404, same as a missing one.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import require_owner
from api.models import ProjectCredentials, ProjectResponse, StatusRequest
from tenants.registry import get_owned_tenant, rotate_secret, set_status
from tenants.store import TenantStore

router = APIRouter()


@router.get("/owners/{owner_id}/projects", response_model=list[ProjectResponse])
def list_projects(request: Request, owner_id: str = Depends(require_owner)) -> list[ProjectResponse]:
    tenant_store: TenantStore = request.app.state.tenant_store
    return [ProjectResponse.from_tenant(t) for t in tenant_store.list_by_owner(owner_id)]


@router.post("/owners/{owner_id}/projects/{project_id}/secret/rotate", response_model=ProjectCredentials)
def recover_project_secret(
    project_id: str, request: Request, owner_id: str = Depends(require_owner)
) -> JSONResponse:
    """Issue a new project secret without the old one. Also lifts a revocation."""
    tenant_store: TenantStore = request.app.state.tenant_store
    tenant = get_owned_tenant(tenant_store, owner_id, project_id)
    secret = rotate_secret(tenant_store, tenant)
    resp = JSONResponse(
        content=ProjectCredentials(project_id=tenant.tenant_id, project_secret=secret).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/owners/{owner_id}/projects/{project_id}/status", response_model=ProjectResponse)
def change_project_status(
    project_id: str, body: StatusRequest, request: Request, owner_id: str = Depends(require_owner)
) -> ProjectResponse:
    """Switch a project between active and inactive. Inactive projects cannot authenticate."""
    tenant_store: TenantStore = request.app.state.tenant_store
    tenant = get_owned_tenant(tenant_store, owner_id, project_id)
    set_status(tenant_store, tenant, body.status)
    return ProjectResponse.from_tenant(tenant)
