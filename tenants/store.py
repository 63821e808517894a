"""
tenants/store.py -- SQLAlchemy Core persistence layer for tenants.

Pattern: Repository + Data Mapper. TenantStore is the repository;
_row_to_tenant / _policy_to_json / _policy_from_json are the mappers. Registry
code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  secret_hash is the only credential column and holds a bcrypt hash or NULL.

Soft delete: rows are never physically removed. get() excludes rows with
is_deleted=1 unless include_deleted=True is passed.

tenant_members is the denormalized tenant -> account list. It is written after
an account is created and is not consulted as a source of truth anywhere in
the engine, so add_member() is idempotent and safe to retry.
"""

from __future__ import annotations

import json
from dataclasses import asdict

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.db import connect, make_engine, now_iso
from core.errors import ConflictError
from tenants.models import (
    DEFAULT_REDIRECT_URL,
    STATUS_ACTIVE,
    AuthMethods,
    PasswordPolicy,
    Role,
    SocialLogin,
    Tenant,
    TenantPolicy,
    TenantProfile,
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_tenants = Table(
    "tenants",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", String(255), nullable=False),
    Column("tenant_id", String(32), nullable=False, unique=True),
    Column("secret_hash", String(60)),  # bcrypt; NULL once revoked
    Column("name", String(255), nullable=False),
    Column("description", Text),
    Column("logo", Text),
    Column("policy", Text, nullable=False),  # JSON, see _policy_to_json
    Column("status", String(16), nullable=False, server_default=STATUS_ACTIVE),
    Column("is_deleted", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("owner_id", "tenant_id", name="uq_tenant_owner"),
)

_members = Table(
    "tenant_members",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("tenant_id", String(32), nullable=False),
    Column("account_id", Integer, nullable=False),
    Column("added_at", String(32), nullable=False),
    UniqueConstraint("tenant_id", "account_id", name="uq_tenant_member"),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TenantStore:
    """Repository for Tenant entities.

    Usage:
        store = TenantStore("sqlite:///:memory:")
        store.create_tenant(tenant)
        tenant = store.get("prjAbCdEfGhIjKl")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def create_tenant(self, tenant: Tenant) -> int:
        """Insert a new tenant and return its row id.

        Raises ConflictError if tenant_id is already taken. The registry
        regenerates the id and retries in that case.
        """
        try:
            with connect(self.engine, "Tenant store") as conn:
                result = conn.execute(
                    _tenants.insert().values(
                        owner_id=tenant.owner_id,
                        tenant_id=tenant.tenant_id,
                        secret_hash=tenant.secret_hash,
                        name=tenant.profile.name,
                        description=tenant.profile.description,
                        logo=tenant.profile.logo,
                        policy=_policy_to_json(tenant.policy),
                        status=tenant.status,
                        is_deleted=1 if tenant.is_deleted else 0,
                        created_at=now_iso(),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError(f"Tenant id {tenant.tenant_id} is already taken.") from exc

    def get(self, tenant_id: str, include_deleted: bool = False) -> Tenant | None:
        """Look up a tenant by its public id. Deleted tenants are invisible by default."""
        query = _tenants.select().where(_tenants.c.tenant_id == tenant_id)
        if not include_deleted:
            query = query.where(_tenants.c.is_deleted == 0)
        with connect(self.engine, "Tenant store") as conn:
            row = conn.execute(query).fetchone()
        return _row_to_tenant(row) if row is not None else None

    def list_by_owner(self, owner_id: str) -> list[Tenant]:
        """Return the owner's live tenants, oldest first."""
        with connect(self.engine, "Tenant store") as conn:
            rows = conn.execute(
                _tenants.select()
                .where((_tenants.c.owner_id == owner_id) & (_tenants.c.is_deleted == 0))
                .order_by(_tenants.c.id)
            ).fetchall()
        return [_row_to_tenant(r) for r in rows]

    def update_secret_hash(self, tenant_id: str, secret_hash: str | None) -> bool:
        """Replace (or with None, revoke) the secret hash of a live tenant.

        Returns True if a row was updated, False if tenant_id was not found.
        """
        return self._update(tenant_id, secret_hash=secret_hash)

    def update_status(self, tenant_id: str, status: str) -> bool:
        return self._update(tenant_id, status=status)

    def mark_deleted(self, tenant_id: str) -> bool:
        """Soft-delete a tenant. Returns False if it was missing or already deleted."""
        return self._update(tenant_id, is_deleted=1)

    def _update(self, tenant_id: str, **fields) -> bool:
        with connect(self.engine, "Tenant store") as conn:
            result = conn.execute(
                _tenants.update()
                .where((_tenants.c.tenant_id == tenant_id) & (_tenants.c.is_deleted == 0))
                .values(**fields)
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Membership list
    # ------------------------------------------------------------------

    def add_member(self, tenant_id: str, account_id: int) -> None:
        """Append account_id to the tenant's member list. Repeating the call is a no-op."""
        try:
            with connect(self.engine, "Tenant store") as conn:
                conn.execute(_members.insert().values(tenant_id=tenant_id, account_id=account_id, added_at=now_iso()))
                conn.commit()
        except IntegrityError:
            return

    def list_members(self, tenant_id: str) -> list[int]:
        with connect(self.engine, "Tenant store") as conn:
            rows = conn.execute(
                select(_members.c.account_id).where(_members.c.tenant_id == tenant_id).order_by(_members.c.id)
            ).fetchall()
        return [r.account_id for r in rows]

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with connect(self.engine, "Tenant store") as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _policy_to_json(policy: TenantPolicy) -> str:
    return json.dumps(asdict(policy))


def _policy_from_json(raw: str) -> TenantPolicy:
    data = json.loads(raw)
    return TenantPolicy(
        roles=[Role(**r) for r in data.get("roles", [])],
        auth_methods=AuthMethods(**data.get("auth_methods", {})),
        social_login=SocialLogin(**data.get("social_login", {})),
        password_policy=PasswordPolicy(**data.get("password_policy", {})),
        redirect_url=data.get("redirect_url") or DEFAULT_REDIRECT_URL,
        auth_url=data.get("auth_url"),
    )


def _row_to_tenant(row) -> Tenant:
    return Tenant(
        id=row.id,
        owner_id=row.owner_id,
        tenant_id=row.tenant_id,
        secret_hash=row.secret_hash,
        profile=TenantProfile(name=row.name, description=row.description, logo=row.logo),
        policy=_policy_from_json(row.policy),
        status=row.status,
        is_deleted=bool(row.is_deleted),
        created_at=row.created_at,
    )
