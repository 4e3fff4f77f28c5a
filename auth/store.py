"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. The service and the
route layer never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the database, not by the service. The service's
  find_by_email() pre-check in register() is a friendlier error for the common
  case only -- two concurrent registrations can both pass it, and the loser
  gets DuplicateEmailError from the constraint here.

Every public method is a single statement against a single row. There are no
multi-statement transactions to manage.

Failure outcomes:
  DuplicateEmailError    -- the UNIQUE(email) constraint rejected a write.
  StoreUnavailableError  -- the database could not be reached or the
                            connection failed mid-statement.
  Not found is None (lookups, update) or False (update_password_hash).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from auth.errors import DuplicateEmailError, StoreUnavailableError
from auth.models import User

logger = logging.getLogger("userauth.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),  # UUID4, assigned here on insert
    Column("email", String(255), nullable=False, unique=True),  # case-sensitive match
    Column("password_hash", Text, nullable=False),
    Column("name", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


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
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user = store.create("a@x.com", hasher.hash("secret1"), "Ann")
        same = store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str, clock: Callable[[], datetime] | None = None) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        try:
            _metadata.create_all(self.engine)
        except (OperationalError, InterfaceError) as exc:
            raise StoreUnavailableError(f"Could not initialise credential store: {exc.orig}") from exc

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Open a pooled connection, translating connectivity failures."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except (OperationalError, InterfaceError) as exc:
            logger.error("Credential store unavailable: %s", exc.orig)
            raise StoreUnavailableError() from exc

    def _now_iso(self) -> str:
        return self._clock().isoformat()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, email: str, password_hash: str, name: str) -> User:
        """Insert a new user and return it.

        Raises DuplicateEmailError if the email is already taken -- including
        when a concurrent request inserted it after the caller's pre-check.
        """
        now = self._now_iso()
        user = User(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            try:
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        email=user.email,
                        password_hash=user.password_hash,
                        name=user.name,
                        created_at=user.created_at,
                        updated_at=user.updated_at,
                    )
                )
            except IntegrityError as exc:
                raise DuplicateEmailError() from exc
            conn.commit()
        logger.info("User created: %s", user.id)
        return user

    def update(self, user_id: str, name: str, email: str) -> User | None:
        """Overwrite name and email, refresh updated_at, and return the new row.

        Returns None if user_id does not exist. Raises DuplicateEmailError if
        the new email belongs to another user.
        """
        stmt = (
            _users.update()
            .where(_users.c.id == user_id)
            .values(name=name, email=email, updated_at=self._now_iso())
            .returning(*_users.c)
        )
        with self._connect() as conn:
            try:
                row = conn.execute(stmt).fetchone()
            except IntegrityError as exc:
                raise DuplicateEmailError() from exc
            conn.commit()
        return _row_to_user(row) if row is not None else None

    def update_password_hash(self, user_id: str, password_hash: str) -> bool:
        """Replace the stored hash. Returns False if user_id was not found."""
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(password_hash=password_hash, updated_at=self._now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self._connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except StoreUnavailableError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password_hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
