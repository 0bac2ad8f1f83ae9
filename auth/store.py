"""
auth/store.py -- SQLAlchemy Core persistence layer for mirrored GitHub users.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  UNIQUE(login) is enforced in SQL. upsert() is a single
  INSERT ... ON CONFLICT(login) DO UPDATE statement followed by a re-read in
  the same transaction, so two concurrent callbacks for the same login can
  never produce two rows.

DB path: auth/oauthdash.db unless DATABASE_URL is set.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'oauthdash.db'}"

# Dialects with native INSERT ... ON CONFLICT support.
_UPSERT_INSERTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("login", String(255), nullable=False, unique=True),  # GitHub username
    Column("email", Text),  # public email, NULL if none
    Column("private_emails", Text),  # ", "-joined, NULL without user:email scope
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so dashboard reads do not block callback writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str | None) -> str | None:
    return email if email else None


def join_private_emails(private_emails: list[str] | None) -> str | None:
    return ", ".join(private_emails) if private_emails else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore()
        user = store.upsert("alice", "a@x.com", ["alice@private.example"])
        store.get_by_login("alice")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        if self.engine.dialect.name not in _UPSERT_INSERTS:
            raise ValueError(f"Unsupported database dialect: {self.engine.dialect.name!r}")
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_login(self, login: str) -> User | None:
        """Look up a user by exact GitHub login. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.login == login)).fetchone()
        return _row_to_user(row) if row is not None else None

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def upsert(self, login: str, email: str | None, private_emails: list[str] | None) -> User:
        """Create or overwrite the record for login and return it.

        Both email fields are replaced on every call, never merged: an empty
        or missing email becomes NULL, and private_emails is NULL unless the
        list has at least one address.
        """
        now = _now_iso()
        insert = _UPSERT_INSERTS[self.engine.dialect.name]
        stmt = insert(_users).values(
            login=login,
            email=normalize_email(email),
            private_emails=join_private_emails(private_emails),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[_users.c.login],
            set_={
                "email": stmt.excluded.email,
                "private_emails": stmt.excluded.private_emails,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with self.engine.begin() as conn:
            conn.execute(stmt)
            row = conn.execute(_users.select().where(_users.c.login == login)).one()
        return _row_to_user(row)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
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
        login=row.login,
        email=row.email,
        private_emails=row.private_emails,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
