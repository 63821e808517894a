"""
accounts/registry.py -- Tenant-scoped account creation and password checks.

create_account() and set_password() are the only places a password_hash is
produced. Each hashes the plaintext it is handed exactly once, so an unchanged
password is never rehashed and a hash is never hashed again.

Role membership is validated by tenants.policy before create_account() is
called. create_account() re-checks only when the caller passes the tenant's
role names explicitly through allowed_roles.

authenticate_account() mirrors authenticate_tenant(): every failure is the
same UnauthorizedError and every attempt runs one bcrypt comparison.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from accounts.models import Account
from accounts.store import AccountStore
from auth.vault import DUMMY_HASH, hash_secret, verify_secret
from core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from tenants.models import Tenant

logger = logging.getLogger("tenantgate.accounts")


def create_account(
    store: AccountStore,
    tenant_id: str,
    username: str,
    email: str,
    password: str,
    role: str | None = None,
    allowed_roles: Iterable[str] | None = None,
) -> Account:
    """Create an account under tenant_id.

    Raises ConflictError if the username or email is already used within the
    tenant, ValidationError if role is outside an explicitly supplied
    allowed_roles.
    """
    if not tenant_id:
        raise ValidationError("Project id is required.")
    if not password:
        raise ValidationError("Password is required.")
    role = role or None
    if role is not None and allowed_roles is not None and role not in set(allowed_roles):
        raise ValidationError(f"Role {role!r} is not configured for this project.")

    taken = store.find_conflict(tenant_id, username, email)
    if taken is not None:
        raise ConflictError(f"User with the same {taken} already exists in the project.")

    account = Account(
        tenant_id=tenant_id,
        username=username,
        email=email,
        password_hash=hash_secret(password),
        role=role,
    )
    account.id = store.create_account(account)
    logger.info("Account created: tenant_id=%s username=%s id=%s", tenant_id, username, account.id)
    return account


def get_account(store: AccountStore, account_id: int) -> Account:
    account = store.get(account_id)
    if account is None:
        raise NotFoundError(f"Account {account_id} not found.")
    return account


def verify_password(account: Account, password: str) -> bool:
    return verify_secret(password, account.password_hash)


def set_password(store: AccountStore, account: Account, new_password: str) -> None:
    """Hash new_password once and persist it as the account's password."""
    if not new_password:
        raise ValidationError("Password is required.")
    password_hash = hash_secret(new_password)
    if not store.update_password_hash(account.id, password_hash):
        raise NotFoundError(f"Account {account.id} not found.")
    account.password_hash = password_hash
    logger.info("Password changed: tenant_id=%s username=%s", account.tenant_id, account.username)


def authenticate_account(store: AccountStore, tenant: Tenant, identifier: str, password: str) -> Account:
    """Resolve identifier per the tenant's login methods and check the password.

    An identifier containing "@" is treated as an email when the tenant
    allows email login; otherwise it is a username when username login is
    allowed. Raises UnauthorizedError on any failure.
    """
    methods = tenant.policy.auth_methods
    account: Account | None = None
    if identifier and "@" in identifier and methods.email:
        account = store.get_by_email(tenant.tenant_id, identifier)
    elif identifier and methods.username:
        account = store.get_by_username(tenant.tenant_id, identifier)

    if account is None:
        # Equalize timing -- do NOT return before running bcrypt.
        verify_secret(password or "", DUMMY_HASH)
        raise UnauthorizedError("Invalid username or password.")
    if not verify_password(account, password or ""):
        raise UnauthorizedError("Invalid username or password.")
    return account
