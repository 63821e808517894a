"""
api/routes/v1/accounts.py -- End-user accounts scoped to one project.

Routes (all require project auth via require_tenant):
  POST /api/v1/projects/{project_id}/accounts/signup      -- create account; 201
  POST /api/v1/projects/{project_id}/accounts/login       -- access + refresh token
  POST /api/v1/projects/{project_id}/accounts/password    -- change password; ends every session
  POST /api/v1/projects/{project_id}/accounts/refresh     -- rotate refresh token
  POST /api/v1/projects/{project_id}/accounts/logout      -- revoke one refresh token
  POST /api/v1/projects/{project_id}/accounts/logout-all  -- revoke every refresh token
  POST /api/v1/projects/{project_id}/accounts/introspect  -- verify an access token

Security:
  signup, login, password and refresh are rate-limited per client IP.
  authenticate_account() equalizes timing for unknown identifiers -- use it, never inline.
  Token responses send Cache-Control: no-store.
  A token issued under one project is rejected (401) under every other.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from accounts.models import TokenPair
from accounts.refresh import (
    confirm_refresh_token,
    issue_token_pair,
    resolve_account,
    revoke_all_refresh_tokens,
    revoke_refresh_token,
    rotate_token_pair,
)
from accounts.registry import authenticate_account, create_account, set_password
from accounts.store import AccountStore
from api.dependencies import require_tenant
from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import (
    AccountResponse,
    IntrospectRequest,
    IntrospectResponse,
    LoginRequest,
    MessageResponse,
    PasswordChangeRequest,
    RefreshRequest,
    SignupRequest,
    SignupResponse,
    TokenPairResponse,
)
from auth.tokens import ACCESS
from tenants.models import Tenant
from tenants.policy import check_password, validate_signup
from tenants.store import TenantStore

router = APIRouter()


def _account_store(request: Request) -> AccountStore:
    return request.app.state.account_store


def _token_response(pair: TokenPair) -> JSONResponse:
    resp = JSONResponse(content=TokenPairResponse.from_pair(pair).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(AUTH_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/projects/{project_id}/accounts/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: SignupRequest, tenant: Tenant = Depends(require_tenant)) -> SignupResponse:
    """Validate the request against the project's policy and create the account."""
    role = body.role or None
    validate_signup(tenant.policy, body.username, body.email, body.password, role)
    account = create_account(
        _account_store(request),
        tenant.tenant_id,
        body.username,
        body.email,
        body.password,
        role=role,
        allowed_roles=tenant.policy.role_names(),
    )
    tenant_store: TenantStore = request.app.state.tenant_store
    tenant_store.add_member(tenant.tenant_id, account.id)
    return SignupResponse(account=AccountResponse.from_account(account))


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/projects/{project_id}/accounts/login", response_model=TokenPairResponse)
def login(request: Request, body: LoginRequest, tenant: Tenant = Depends(require_tenant)) -> JSONResponse:
    store = _account_store(request)
    account = authenticate_account(store, tenant, body.identifier, body.password)
    return _token_response(issue_token_pair(store, account))


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/projects/{project_id}/accounts/password", response_model=MessageResponse)
def change_password(
    request: Request, body: PasswordChangeRequest, tenant: Tenant = Depends(require_tenant)
) -> MessageResponse:
    """Replace the password after checking the current one and the project's policy.

    Every refresh token of the account is revoked.
    """
    store = _account_store(request)
    account = authenticate_account(store, tenant, body.identifier, body.password)
    check_password(tenant.policy.password_policy, body.new_password)
    set_password(store, account, body.new_password)
    revoke_all_refresh_tokens(store, account)
    return MessageResponse(message="Password changed.")


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/projects/{project_id}/accounts/refresh", response_model=TokenPairResponse)
def refresh(request: Request, body: RefreshRequest, tenant: Tenant = Depends(require_tenant)) -> JSONResponse:
    """Exchange a refresh token for a new pair. The presented token is spent."""
    store = _account_store(request)
    account = resolve_account(store, tenant.tenant_id, body.refresh_token)
    return _token_response(rotate_token_pair(store, account, body.refresh_token))


@router.post("/projects/{project_id}/accounts/logout", response_model=MessageResponse)
def logout(request: Request, body: RefreshRequest, tenant: Tenant = Depends(require_tenant)) -> MessageResponse:
    store = _account_store(request)
    account = resolve_account(store, tenant.tenant_id, body.refresh_token)
    revoke_refresh_token(store, account, body.refresh_token)
    return MessageResponse(message="Logged out.")


@router.post("/projects/{project_id}/accounts/logout-all", response_model=MessageResponse)
def logout_all(request: Request, body: RefreshRequest, tenant: Tenant = Depends(require_tenant)) -> MessageResponse:
    """Revoke every refresh token of the account that owns the presented one."""
    store = _account_store(request)
    account = resolve_account(store, tenant.tenant_id, body.refresh_token)
    confirm_refresh_token(store, account, body.refresh_token)
    revoke_all_refresh_tokens(store, account)
    return MessageResponse(message="Logged out of all sessions.")


@router.post("/projects/{project_id}/accounts/introspect", response_model=IntrospectResponse)
def introspect(request: Request, body: IntrospectRequest, tenant: Tenant = Depends(require_tenant)) -> IntrospectResponse:
    account = resolve_account(_account_store(request), tenant.tenant_id, body.token, purpose=ACCESS)
    return IntrospectResponse(account=AccountResponse.from_account(account))
