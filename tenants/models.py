"""
tenants/models.py -- Domain dataclasses for tenants (projects) and their policy.

Pattern: Data class. Mirrors accounts/models.py -- dataclasses own domain shape;
the store persists them and the registry does the work. The only logic here is
construction-time validation of the policy and small read helpers.

A Tenant never carries a plaintext secret. register_tenant() and
rotate_secret() return the plaintext as a separate value, so serializing a
Tenant (to JSON, to a log line, to the DB) cannot leak it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE)

DEFAULT_REDIRECT_URL = "http://localhost:3000"


@dataclass
class Role:
    """A role an account may hold. permissions are stored, never evaluated here."""

    name: str
    permissions: list[str] = field(default_factory=list)


@dataclass
class AuthMethods:
    """Which identifiers an account may log in with."""

    email: bool = False
    username: bool = True


@dataclass
class SocialLogin:
    """Informational flags only -- no social login flow is implemented."""

    google: bool = False
    github: bool = False


@dataclass
class PasswordPolicy:
    min_length: int = 8
    require_digit: bool = False
    require_symbol: bool = False
    require_uppercase: bool = False

    def __post_init__(self) -> None:
        if self.min_length < 1:
            raise ValueError("min_length must be at least 1")


@dataclass
class TenantPolicy:
    """Per-tenant configuration checked at signup and login."""

    roles: list[Role] = field(default_factory=list)
    auth_methods: AuthMethods = field(default_factory=AuthMethods)
    social_login: SocialLogin = field(default_factory=SocialLogin)
    password_policy: PasswordPolicy = field(default_factory=PasswordPolicy)
    redirect_url: str = DEFAULT_REDIRECT_URL
    auth_url: str | None = None

    def __post_init__(self) -> None:
        names = [r.name for r in self.roles]
        if len(names) != len(set(names)):
            raise ValueError("role names must be unique")

    def role_names(self) -> set[str]:
        return {r.name for r in self.roles}


@dataclass
class TenantProfile:
    name: str
    description: str | None = None
    logo: str | None = None


@dataclass
class Tenant:
    """An isolated customer namespace.

    tenant_id is the public identifier ("prj" + 12 random chars), generated
    once at registration. secret_hash is the bcrypt hash of the tenant secret;
    None means the credentials were revoked and authentication always fails
    until the next rotation.

    id is None before the record is written to the database.
    """

    owner_id: str
    tenant_id: str
    profile: TenantProfile
    policy: TenantPolicy = field(default_factory=TenantPolicy)
    secret_hash: str | None = None
    status: str = STATUS_ACTIVE
    is_deleted: bool = False
    id: int | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
