"""
API request and response models for TenantGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in tenants/models.py and
accounts/models.py, which own the internal domain representation. Route
handlers map between the two with the to_*/from_* factory methods below.

Field checks here are structural only (types, lengths). Tenant policy rules --
username shape, password strength, role membership -- are enforced by
tenants.policy so their failures surface as 400 with the rule's message.
"""

from __future__ import annotations

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from accounts.models import Account, TokenPair
from tenants.models import (
    DEFAULT_REDIRECT_URL,
    AuthMethods,
    PasswordPolicy,
    Role,
    SocialLogin,
    Tenant,
    TenantPolicy,
    TenantProfile,
)

# ---------------------------------------------------------------------------
# Project settings (shared by request and response)
# ---------------------------------------------------------------------------


class RoleModel(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    permissions: list[str] = Field(default_factory=list, max_length=100)


class AuthMethodsModel(BaseModel):
    email: bool = False
    username: bool = True


class SocialLoginModel(BaseModel):
    google: bool = False
    github: bool = False


class PasswordPolicyModel(BaseModel):
    min_length: int = Field(default=8, ge=1, le=72)
    require_digit: bool = False
    require_symbol: bool = False
    require_uppercase: bool = False


class ProjectSettings(BaseModel):
    """Tenant policy as exchanged over HTTP."""

    roles: list[RoleModel] = Field(default_factory=list, max_length=50)
    auth_methods: AuthMethodsModel = Field(default_factory=AuthMethodsModel)
    social_login: SocialLoginModel = Field(default_factory=SocialLoginModel)
    password_policy: PasswordPolicyModel = Field(default_factory=PasswordPolicyModel)
    redirect_url: str = Field(default=DEFAULT_REDIRECT_URL, max_length=2048)
    auth_url: Optional[str] = Field(default=None, max_length=2048)

    def to_policy(self) -> TenantPolicy:
        """Build the domain policy. Raises ValueError on duplicate role names."""
        return TenantPolicy(
            roles=[Role(name=r.name, permissions=list(r.permissions)) for r in self.roles],
            auth_methods=AuthMethods(**self.auth_methods.model_dump()),
            social_login=SocialLogin(**self.social_login.model_dump()),
            password_policy=PasswordPolicy(**self.password_policy.model_dump()),
            redirect_url=self.redirect_url,
            auth_url=self.auth_url,
        )

    @classmethod
    def from_policy(cls, policy: TenantPolicy) -> "ProjectSettings":
        return cls(
            roles=[RoleModel(name=r.name, permissions=r.permissions) for r in policy.roles],
            auth_methods=AuthMethodsModel(email=policy.auth_methods.email, username=policy.auth_methods.username),
            social_login=SocialLoginModel(google=policy.social_login.google, github=policy.social_login.github),
            password_policy=PasswordPolicyModel(
                min_length=policy.password_policy.min_length,
                require_digit=policy.password_policy.require_digit,
                require_symbol=policy.password_policy.require_symbol,
                require_uppercase=policy.password_policy.require_uppercase,
            ),
            redirect_url=policy.redirect_url,
            auth_url=policy.auth_url,
        )


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ProjectDetails(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    logo: Optional[str] = Field(default=None, max_length=2048)

    def to_profile(self) -> TenantProfile:
        return TenantProfile(name=self.name, description=self.description, logo=self.logo)


class ProjectCreate(BaseModel):
    """Request body for POST /api/v1/projects."""

    model_config = ConfigDict(str_strip_whitespace=True)

    owner_id: str = Field(min_length=1, max_length=255)
    details: ProjectDetails
    settings: ProjectSettings = Field(default_factory=ProjectSettings)


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/projects/{project_id}/accounts/signup."""

    username: str = Field(max_length=255)
    email: str = Field(max_length=320)
    password: str = Field(max_length=255)
    role: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    """identifier is a username, or an email when the project allows email login."""

    identifier: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=255)


class PasswordChangeRequest(BaseModel):
    """Request body for POST /api/v1/projects/{project_id}/accounts/password."""

    identifier: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(max_length=255)


class StatusRequest(BaseModel):
    """Request body for POST /api/v1/owners/{owner_id}/projects/{project_id}/status."""

    status: str = Field(min_length=1, max_length=16)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1, max_length=4096)


class IntrospectRequest(BaseModel):
    token: str = Field(min_length=1, max_length=4096)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ProjectResponse(BaseModel):
    """Public view of a tenant. Never includes the secret or its hash."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    owner_id: str
    name: str
    description: Optional[str]
    logo: Optional[str]
    settings: ProjectSettings
    status: str
    created_at: str

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "ProjectResponse":
        return cls(
            project_id=tenant.tenant_id,
            owner_id=tenant.owner_id,
            name=tenant.profile.name,
            description=tenant.profile.description,
            logo=tenant.profile.logo,
            settings=ProjectSettings.from_policy(tenant.policy),
            status=tenant.status,
            created_at=tenant.created_at,
        )


class ProjectCredentials(BaseModel):
    """The one and only time a project secret is shown."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    project_secret: str


class ProjectCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    project: ProjectResponse
    credentials: ProjectCredentials


class ProvidersResponse(BaseModel):
    """Login methods a project's end users may use."""

    model_config = ConfigDict(frozen=True)

    auth_methods: AuthMethodsModel
    social_login: SocialLoginModel


class AccountResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    project_id: str
    username: str
    email: str
    role: Optional[str]

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            project_id=account.tenant_id,
            username=account.username,
            email=account.email,
            role=account.role,
        )


class SignupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = "User created successfully."
    account: AccountResponse


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        now = int(time.time())
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=max(pair.access_expires_at - now, 0),
            refresh_expires_in=max(pair.refresh_expires_at - now, 0),
        )


class IntrospectResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    active: bool = True
    account: AccountResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
