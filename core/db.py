"""
core/db.py -- Engine construction and connection handling shared by the stores.

Both TenantStore and AccountStore use SQLAlchemy Core (not ORM) so the
dataclasses in tenants/models.py and accounts/models.py stay the domain truth.
Swapping SQLite for PostgreSQL is a connection string change.

connect() is the only way stores open connections. It converts driver-level
failures into InfrastructureError so callers see the engine's error taxonomy
rather than SQLAlchemy internals. IntegrityError is passed through untouched
because the stores turn it into ConflictError with entity-specific context.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import InfrastructureError


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an Engine, applying the SQLite-specific options when needed."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI runs sync handlers in a thread pool; the same pooled
        # connection may be used from several threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


@contextmanager
def connect(engine: Engine, what: str, *, transactional: bool = False) -> Iterator[Connection]:
    """Yield a connection, translating backend failures to InfrastructureError.

    transactional=True wraps the block in engine.begin(): everything commits
    together on success and rolls back together on any exception.
    """
    try:
        with engine.begin() if transactional else engine.connect() as conn:
            yield conn
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        raise InfrastructureError(f"{what} is unavailable.") from exc


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
