"""
accounts/store.py -- SQLAlchemy Core persistence layer for accounts and refresh tokens.

Pattern: Repository + Data Mapper (same as tenants/store.py).

Schema notes:
  UNIQUE(tenant_id, username) and UNIQUE(tenant_id, email) are the tenant
  isolation invariant. The registry pre-checks both to report which field
  collided; the constraints catch the race where two signups pass the
  pre-check together.

  refresh_tokens is the account's token set as a keyed collection: one row
  per issued token, keyed by the SHA-256 digest of the token string.
  expires_at (unix seconds) lets expired rows be purged without decoding.

Atomicity:
  replace_refresh_token() removes the presented digest and inserts its
  replacement inside one transaction. The DELETE's rowcount is the membership
  check, so of two concurrent rotations of the same token exactly one sees
  rowcount == 1; the other inserts nothing. A failure after the DELETE rolls
  the DELETE back -- the account is never left with the old token gone and no
  replacement recorded.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, UniqueConstraint, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from accounts.models import Account
from core.db import connect, make_engine, now_iso
from core.errors import ConflictError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("tenant_id", String(32), nullable=False, index=True),
    Column("username", String(255), nullable=False),
    Column("email", String(320), nullable=False),
    Column("password_hash", String(60), nullable=False),
    Column("role", String(100)),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("tenant_id", "username", name="uq_account_username"),
    UniqueConstraint("tenant_id", "email", name="uq_account_email"),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, nullable=False, index=True),
    Column("token_digest", String(64), nullable=False, unique=True),  # SHA-256 hex
    Column("issued_at", String(32), nullable=False),
    Column("expires_at", Integer, nullable=False),  # unix seconds
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities and their refresh-token sets.

    Usage:
        store = AccountStore("sqlite:///:memory:")
        account_id = store.create_account(account)
        account = store.get_by_username("prjAbCdEfGhIjKl", "alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its ID.

        Raises ConflictError if (tenant_id, username) or (tenant_id, email)
        already exists.
        """
        try:
            with connect(self.engine, "Account store") as conn:
                result = conn.execute(
                    _accounts.insert().values(
                        tenant_id=account.tenant_id,
                        username=account.username,
                        email=account.email,
                        password_hash=account.password_hash,
                        role=account.role,
                        created_at=now_iso(),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError(
                "User with the same username or email already exists in the project.",
            ) from exc

    def find_conflict(self, tenant_id: str, username: str, email: str) -> str | None:
        """Return "username" or "email" if either is taken within tenant_id, else None."""
        with connect(self.engine, "Account store") as conn:
            row = conn.execute(
                select(_accounts.c.username, _accounts.c.email)
                .where(_accounts.c.tenant_id == tenant_id)
                .where((_accounts.c.username == username) | (_accounts.c.email == email))
                .limit(1)
            ).fetchone()
        if row is None:
            return None
        return "username" if row.username == username else "email"

    def get(self, account_id: int) -> Account | None:
        with connect(self.engine, "Account store") as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
            tokens = self._digests(conn, account_id) if row is not None else []
        return _row_to_account(row, tokens) if row is not None else None

    def get_by_username(self, tenant_id: str, username: str) -> Account | None:
        return self._get_where((_accounts.c.tenant_id == tenant_id) & (_accounts.c.username == username))

    def get_by_email(self, tenant_id: str, email: str) -> Account | None:
        return self._get_where((_accounts.c.tenant_id == tenant_id) & (_accounts.c.email == email))

    def _get_where(self, clause) -> Account | None:
        with connect(self.engine, "Account store") as conn:
            row = conn.execute(_accounts.select().where(clause)).fetchone()
            tokens = self._digests(conn, row.id) if row is not None else []
        return _row_to_account(row, tokens) if row is not None else None

    def update_password_hash(self, account_id: int, password_hash: str) -> bool:
        """Returns True if a row was updated, False if account_id was not found."""
        with connect(self.engine, "Account store") as conn:
            result = conn.execute(
                _accounts.update().where(_accounts.c.id == account_id).values(password_hash=password_hash)
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Refresh-token set
    # ------------------------------------------------------------------

    def list_refresh_tokens(self, account_id: int) -> list[str]:
        """Return the account's refresh-token digests in issue order."""
        with connect(self.engine, "Account store") as conn:
            return self._digests(conn, account_id)

    def has_refresh_token(self, account_id: int, digest: str) -> bool:
        with connect(self.engine, "Account store") as conn:
            row = conn.execute(
                select(_refresh_tokens.c.id).where(
                    (_refresh_tokens.c.account_id == account_id) & (_refresh_tokens.c.token_digest == digest)
                )
            ).fetchone()
        return row is not None

    def add_refresh_token(self, account_id: int, digest: str, expires_at: int, purge_before: int | None = None) -> None:
        """Record a newly issued token; optionally drop the account's expired ones in the same write."""
        with connect(self.engine, "Account store", transactional=True) as conn:
            if purge_before is not None:
                self._purge(conn, purge_before, account_id)
            conn.execute(
                _refresh_tokens.insert().values(
                    account_id=account_id,
                    token_digest=digest,
                    issued_at=now_iso(),
                    expires_at=expires_at,
                )
            )

    def replace_refresh_token(
        self,
        account_id: int,
        old_digest: str,
        new_digest: str,
        expires_at: int,
        purge_before: int | None = None,
    ) -> bool:
        """Atomically swap old_digest for new_digest.

        Returns False -- and writes nothing -- if old_digest is not currently
        in the account's set.
        """
        with connect(self.engine, "Account store", transactional=True) as conn:
            removed = conn.execute(
                _refresh_tokens.delete().where(
                    (_refresh_tokens.c.account_id == account_id) & (_refresh_tokens.c.token_digest == old_digest)
                )
            ).rowcount
            if removed == 0:
                return False
            if purge_before is not None:
                self._purge(conn, purge_before, account_id)
            conn.execute(
                _refresh_tokens.insert().values(
                    account_id=account_id,
                    token_digest=new_digest,
                    issued_at=now_iso(),
                    expires_at=expires_at,
                )
            )
        return True

    def remove_refresh_token(self, account_id: int, digest: str, purge_before: int | None = None) -> bool:
        """Delete one token. Returns False -- and purges nothing -- if it was not in the account's set."""
        with connect(self.engine, "Account store", transactional=True) as conn:
            removed = conn.execute(
                _refresh_tokens.delete().where(
                    (_refresh_tokens.c.account_id == account_id) & (_refresh_tokens.c.token_digest == digest)
                )
            ).rowcount
            if removed and purge_before is not None:
                self._purge(conn, purge_before, account_id)
        return removed > 0

    def remove_all_refresh_tokens(self, account_id: int) -> int:
        """Empty the account's set. Returns the number of tokens removed."""
        with connect(self.engine, "Account store", transactional=True) as conn:
            return conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.account_id == account_id)).rowcount

    def purge_expired_refresh_tokens(self, before: int, account_id: int | None = None) -> int:
        """Delete tokens whose expires_at is at or before `before`. Returns rows removed."""
        with connect(self.engine, "Account store", transactional=True) as conn:
            return self._purge(conn, before, account_id)

    @staticmethod
    def _purge(conn, before: int, account_id: int | None) -> int:
        query = _refresh_tokens.delete().where(_refresh_tokens.c.expires_at <= before)
        if account_id is not None:
            query = query.where(_refresh_tokens.c.account_id == account_id)
        return conn.execute(query).rowcount

    @staticmethod
    def _digests(conn, account_id: int) -> list[str]:
        rows = conn.execute(
            select(_refresh_tokens.c.token_digest)
            .where(_refresh_tokens.c.account_id == account_id)
            .order_by(_refresh_tokens.c.id)
        ).fetchall()
        return [r.token_digest for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row, refresh_tokens: list[str]) -> Account:
    return Account(
        id=row.id,
        tenant_id=row.tenant_id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        role=row.role,
        refresh_tokens=refresh_tokens,
        created_at=row.created_at,
    )
