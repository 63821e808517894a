"""
tenants/registry.py -- Tenant identity, credential generation and lifecycle.

Credential design:
  tenant_id: "prj" + 12 characters drawn with secrets.choice from a 64-symbol
      alphabet (72 bits). Globally unique via the store's UNIQUE index; on the
      negligible chance of a collision the id is regenerated.

  Secret: secrets.token_hex(16) -- 128 bits of entropy rendered as 32 hex
      characters. Only the bcrypt hash is persisted. The plaintext is returned
      once from register_tenant() / rotate_secret() and is never logged,
      stored, or attached to the Tenant object.

Authentication:
  authenticate_tenant() returns one UnauthorizedError for every failure
  (unknown id, deleted, inactive, revoked, wrong secret) and always runs one
  bcrypt comparison, so neither the response nor its timing tells a caller
  whether a tenant id exists.
"""

from __future__ import annotations

import logging
import secrets
import string

from auth.vault import DUMMY_HASH, hash_secret, verify_secret
from core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from tenants.models import STATUS_ACTIVE, STATUSES, Tenant, TenantPolicy, TenantProfile
from tenants.store import TenantStore

logger = logging.getLogger("tenantgate.tenants")

TENANT_ID_PREFIX = "prj"
_TENANT_ID_ALPHABET = string.ascii_letters + string.digits + "_-"
_TENANT_ID_LENGTH = 12
_SECRET_BYTES = 16
_MAX_ID_ATTEMPTS = 5


def generate_tenant_id() -> str:
    return TENANT_ID_PREFIX + "".join(secrets.choice(_TENANT_ID_ALPHABET) for _ in range(_TENANT_ID_LENGTH))


def generate_secret() -> str:
    return secrets.token_hex(_SECRET_BYTES)


def register_tenant(
    store: TenantStore,
    owner_id: str,
    profile: TenantProfile,
    policy: TenantPolicy | None = None,
) -> tuple[Tenant, str]:
    """Create a tenant and return (tenant, plaintext_secret).

    The caller must hand the plaintext secret to the owner exactly once.
    """
    if not owner_id:
        raise ValidationError("Owner id is required.")
    if not profile.name:
        raise ValidationError("Project name is required.")

    secret = generate_secret()
    tenant = Tenant(
        owner_id=owner_id,
        tenant_id="",
        profile=profile,
        policy=policy or TenantPolicy(),
        secret_hash=hash_secret(secret),
    )
    for _ in range(_MAX_ID_ATTEMPTS):
        tenant.tenant_id = generate_tenant_id()
        try:
            tenant.id = store.create_tenant(tenant)
            break
        except ConflictError:
            logger.warning("Tenant id collision, regenerating")
    else:
        raise ConflictError("Could not allocate a unique tenant id.")

    stored = store.get(tenant.tenant_id)
    logger.info("Tenant registered: tenant_id=%s owner=%s", tenant.tenant_id, owner_id)
    return (stored or tenant), secret


def authenticate_tenant(store: TenantStore, tenant_id: str, secret: str) -> Tenant:
    """Return the live tenant if secret matches its current credentials.

    Raises UnauthorizedError otherwise -- identical for every failure cause.
    """
    tenant = store.get(tenant_id) if tenant_id else None
    if tenant is None or tenant.secret_hash is None or tenant.status != STATUS_ACTIVE:
        # Equalize timing -- do NOT return before running bcrypt.
        verify_secret(secret or "", DUMMY_HASH)
        raise UnauthorizedError("Invalid project credentials.")
    if not verify_secret(secret or "", tenant.secret_hash):
        raise UnauthorizedError("Invalid project credentials.")
    return tenant


def get_tenant(store: TenantStore, tenant_id: str) -> Tenant:
    """Internal lookup of a live tenant. Raises NotFoundError if absent or deleted."""
    tenant = store.get(tenant_id)
    if tenant is None:
        raise NotFoundError(f"Project {tenant_id} not found.")
    return tenant


def get_owned_tenant(store: TenantStore, owner_id: str, tenant_id: str) -> Tenant:
    """Look up a live tenant belonging to owner_id.

    A tenant of another owner raises the same NotFoundError as a missing one.
    """
    tenant = store.get(tenant_id)
    if tenant is None or tenant.owner_id != owner_id:
        raise NotFoundError(f"Project {tenant_id} not found.")
    return tenant


def rotate_secret(store: TenantStore, tenant: Tenant) -> str:
    """Replace the tenant's secret and return the new plaintext, once.

    The previous secret stops authenticating as soon as this returns. Also
    restores authentication after revoke_credentials().
    """
    secret = generate_secret()
    secret_hash = hash_secret(secret)
    if not store.update_secret_hash(tenant.tenant_id, secret_hash):
        raise NotFoundError(f"Project {tenant.tenant_id} not found.")
    tenant.secret_hash = secret_hash
    logger.info("Tenant secret rotated: tenant_id=%s", tenant.tenant_id)
    return secret


def revoke_credentials(store: TenantStore, tenant: Tenant) -> None:
    """Null the secret hash. Every later authenticate_tenant() call fails until rotation."""
    if not store.update_secret_hash(tenant.tenant_id, None):
        raise NotFoundError(f"Project {tenant.tenant_id} not found.")
    tenant.secret_hash = None
    logger.info("Tenant credentials revoked: tenant_id=%s", tenant.tenant_id)


def soft_delete(store: TenantStore, tenant: Tenant) -> None:
    """Mark the tenant deleted. It disappears from every registry lookup."""
    if not store.mark_deleted(tenant.tenant_id):
        raise NotFoundError(f"Project {tenant.tenant_id} not found.")
    tenant.is_deleted = True
    logger.info("Tenant deleted: tenant_id=%s", tenant.tenant_id)


def set_status(store: TenantStore, tenant: Tenant, status: str) -> None:
    """Switch a tenant between active and inactive. Inactive tenants cannot authenticate."""
    if status not in STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(STATUSES)}")
    if not store.update_status(tenant.tenant_id, status):
        raise NotFoundError(f"Project {tenant.tenant_id} not found.")
    tenant.status = status
    logger.info("Tenant status changed: tenant_id=%s status=%s", tenant.tenant_id, status)
