"""
accounts/models.py -- Domain dataclasses for tenant-scoped end-user accounts.

Pattern: Data class (pure data container, zero logic).
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Account:
    """An end user registered under one tenant.

    (username, tenant_id) and (email, tenant_id) are each unique: the same
    person may reuse a username or email across tenants, never within one.
    tenant_id is the tenant's public id -- a lookup key, not an ownership link.

    password_hash is set by the registry, which hashes a plaintext exactly
    once per change. role, when present, was validated against the tenant's
    policy before the account was created.

    refresh_tokens holds the SHA-256 digests of the currently issued refresh
    tokens in issue order. The store is the authority; this list is a snapshot
    refreshed after every lifecycle operation.

    id is None before the record is written to the database.
    """

    tenant_id: str
    username: str
    email: str
    password_hash: str
    role: str | None = None
    refresh_tokens: list[str] = field(default_factory=list)
    id: int | None = None
    created_at: str = ""


@dataclass(frozen=True)
class TokenPair:
    """What a successful login or refresh hands back to the client."""

    access_token: str
    refresh_token: str
    access_expires_at: int
    refresh_expires_at: int
