"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore (credentials) and RevocationStore (logged-out tokens) are the
repositories; _row_to_user is the mapper. Service and route code never
touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  users.email carries a UNIQUE constraint. It is the authoritative duplicate
  check for registration: create_user() raises IntegrityError when it fires.

  Revoked tokens are keyed by SHA-256(token), not the raw bearer string, so a
  leaked table cannot be replayed. Lookups stay O(1) via the primary key.

Timeouts: SQLite connections get timeout=<store timeout> so a writer waiting
on a lock fails with OperationalError instead of hanging the request.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine

from auth.models import User

logger = logging.getLogger("authgate.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(255), nullable=False, server_default=""),
    Column("last_name", String(255), nullable=False, server_default=""),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_revoked_tokens = Table(
    "revoked_tokens",
    _metadata,
    Column("token_hash", String(64), primary_key=True),  # SHA-256 hex of the raw token
    Column("expires_at", Float, nullable=False, index=True),  # epoch seconds, copied from exp
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _make_engine(db_url: str, timeout: float) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = timeout
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def token_digest(token: str) -> str:
    """Return the revocation key for a raw token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///authgate.db")
        user_id = store.create_user(User(email="a@b.co", hashed_password=hash_password("secret")))
        user = store.get_by_email("a@b.co")
        store.close()
    """

    def __init__(self, db_url: str, timeout: float = 5.0) -> None:
        self.engine: Engine = _make_engine(db_url, timeout)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            logger.exception("User store ping failed")
            return False
        return True

    def create_user(self, user: User) -> str:
        """Insert a new user and return its assigned id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers treat that as the authoritative "already registered" signal --
        a pre-check alone cannot close the race between two concurrent sign-ups.
        """
        user_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    role=user.role,
                    is_active=1 if user.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def email_exists(self, email: str) -> bool:
        """Return True if any record, active or not, holds this email."""
        with self.engine.connect() as conn:
            count = conn.execute(
                text("SELECT COUNT(*) FROM users WHERE email = :email"),
                {"email": email},
            ).scalar()
        return (count or 0) > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Revocation store
# ---------------------------------------------------------------------------


class RevocationStore:
    """Repository for revoked (logged-out) tokens.

    A record lives until the token it refers to would have expired anyway;
    purge_expired() removes records past that point.
    """

    def __init__(self, db_url: str, timeout: float = 5.0) -> None:
        self.engine: Engine = _make_engine(db_url, timeout)

    def revoke(self, token: str, expires_at: datetime) -> None:
        """Record a token as revoked.

        Raises sqlalchemy.exc.IntegrityError if the token is already revoked.
        """
        with self.engine.connect() as conn:
            conn.execute(
                _revoked_tokens.insert().values(
                    token_hash=token_digest(token),
                    expires_at=expires_at.timestamp(),
                    created_at=_now_iso(),
                )
            )
            conn.commit()

    def is_revoked(self, token: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                _revoked_tokens.select().where(_revoked_tokens.c.token_hash == token_digest(token))
            ).fetchone()
        return row is not None

    def purge_expired(self, now: float | None = None) -> int:
        """Delete records whose token has expired. Returns number of rows removed."""
        cutoff = time.time() if now is None else now
        with self.engine.connect() as conn:
            result = conn.execute(_revoked_tokens.delete().where(_revoked_tokens.c.expires_at <= cutoff))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        first_name=row.first_name,
        last_name=row.last_name,
        role=row.role,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
