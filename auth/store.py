"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_user is the mapper. Service and guard code never touch SQL directly.

Each user is one row. Addresses are kept inside the row as a JSON column so a
profile read or write is a single-row operation -- the database's own
single-row atomicity is the only consistency guarantee relied on.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The password hash is only selected by get_by_email(), which the login path
  uses. get_by_id() and list_users() never load it.

  email carries a UNIQUE constraint. The service still checks before insert
  (for a clean error on the common path); the constraint catches the case
  where two registrations pass that check concurrently. create_user() lets
  sqlalchemy.exc.IntegrityError propagate so the caller can map it.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from auth.models import Address, Role, User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(320), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default=Role.customer.value),
    Column("phone", String(40), nullable=False, server_default=""),
    Column("addresses", JSON, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Everything except the password hash.
_public_columns = [c for c in _users.c if c.name != "password_hash"]

_UPDATABLE_FIELDS = {"name", "phone", "addresses"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore()
        user_id = store.create_user(User(name="Ann", email="ann@x.com", password_hash=hash_password("secret1")))
        user = store.get_by_id(user_id)
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        engine_args: dict = {}
        if "mode=memory" in db_url:
            # One connection keeps the in-memory database alive across threads.
            engine_args["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_args)
        if db_url.startswith("sqlite") and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(select(1)).scalar() == 1

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by normalized email, password hash included.

        Only the login path should call this. Callers pass an already
        normalized email; the store does not re-normalize.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def email_exists(self, email: str) -> bool:
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(_users).where(_users.c.email == email)).scalar()
        return (count or 0) > 0

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by id without the password hash. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(select(*_public_columns).where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users, oldest first, without password hashes."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(*_public_columns).order_by(_users.c.created_at, _users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its assigned id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        if user.password_hash is None:
            raise ValueError("create_user() requires a password hash")
        user_id = _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    name=user.name,
                    email=user.email,
                    password_hash=user.password_hash,
                    role=user.role.value,
                    phone=user.phone,
                    addresses=[asdict(a) for a in user.addresses],
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def update_user(self, user_id: str, **fields) -> bool:
        """Apply a partial update to name, phone and/or addresses.

        Only the keyword arguments actually passed are written. addresses must
        be a list of Address. updated_at is always refreshed.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)!r}")
        if "addresses" in fields:
            fields["addresses"] = [asdict(a) for a in fields["addresses"]]
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(**fields, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Tokens already issued to the user stay cryptographically valid until
        expiry; the guard rejects them because the subject no longer resolves.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # password_hash is absent from rows selected with _public_columns.
    mapping = row._mapping
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=mapping.get("password_hash"),
        role=Role(row.role),
        phone=row.phone or "",
        addresses=[Address(**a) for a in (row.addresses or [])],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
