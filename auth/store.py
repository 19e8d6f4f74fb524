"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. The service and routes never touch SQL directly.

The service depends only on four methods (find_by_username, find_by_id,
count_all, save). Anything with that shape can stand in for UserStore, which
is how the service tests run against an in-memory fake.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Usernames are stored normalized (trimmed, lower-cased) and the column has
  a UNIQUE constraint, so case-insensitive uniqueness is enforced by the
  database. A concurrent duplicate insert surfaces as DuplicateUsernameError.

Errors:
  Every SQLAlchemyError is re-raised as StoreError so callers never need to
  import sqlalchemy. IntegrityError on the username becomes
  DuplicateUsernameError.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import User, normalize_username

logger = logging.getLogger("stockroom.store")

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class StoreError(Exception):
    """The credential store could not complete an operation."""


class DuplicateUsernameError(StoreError):
    """A user with the same normalized username already exists."""


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("last_login", Text),  # ISO 8601, NULL until first login
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        role=row.role,
        is_active=bool(row.is_active),
        last_login=_parse_ts(row.last_login),
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///stockroom_auth.db")
        store.save(User(username="admin", password_hash=hash_password("secret"), role="admin"))
        user = store.find_by_username("Admin")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        try:
            self.engine: Engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
            if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
                event.listen(self.engine, "connect", _set_wal_mode)
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not initialise user store: {exc}") from exc

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Run a trivial query; True if the database answers."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_username(self, username: str) -> User | None:
        """Look up a user by username, case-insensitively. None if not found."""
        stmt = _users.select().where(_users.c.username == normalize_username(username))
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).fetchone()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a user by id. None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return _row_to_user(row) if row is not None else None

    def count_all(self) -> int:
        """Return the total number of user records."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(_users)).scalar()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return result or 0

    def list_users(self) -> list[User]:
        """Return all users ordered by username."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, user: User) -> User:
        """Insert user if it has no id yet, otherwise update its mutable fields.

        On insert the store assigns id and created_at and normalizes the
        username on the passed object. Raises DuplicateUsernameError if the
        normalized username is taken. Returns the same object.
        """
        if user.id is None:
            return self._insert(user)
        self._update(user)
        return user

    def _insert(self, user: User) -> User:
        user.username = normalize_username(user.username)
        new_id = _new_id()
        created_at = _now_iso()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=new_id,
                        username=user.username,
                        password_hash=user.password_hash,
                        role=user.role,
                        is_active=user.is_active,
                        last_login=user.last_login.isoformat() if user.last_login else None,
                        created_at=created_at,
                    )
                )
        except IntegrityError as exc:
            logger.warning("Rejected duplicate username %r", user.username)
            raise DuplicateUsernameError(f"Username '{user.username}' already exists") from exc
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        user.id = new_id
        user.created_at = created_at
        return user

    def _update(self, user: User) -> None:
        # username and id are immutable once stored; only these fields move.
        values = {
            "password_hash": user.password_hash,
            "role": user.role,
            "is_active": user.is_active,
            "last_login": user.last_login.isoformat() if user.last_login else None,
        }
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user.id).values(**values))
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        if result.rowcount == 0:
            raise StoreError(f"User {user.id} does not exist")

    def set_active(self, user_id: str, is_active: bool) -> bool:
        """Enable or disable an account. Returns False if user_id was not found."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(is_active=is_active))
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()
