"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as quiz/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced in SQL as well as in code. The code-level check
  in auth/credentials.py gives a friendly Conflict; the constraint catches the
  concurrent-duplicate race the check cannot see.

Layer rule: no imports from api/ or quiz/.

app_settings table: single-row settings table (id=1 enforced by CHECK
constraint). Seeded on first startup. setup_completed flips to 1 the first
time an admin is created through the bootstrap path and never flips back.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import User

_DEFAULT_DB_URL = "sqlite:///quizdesk.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="student"),
    Column("created_at", String(32), nullable=False),
    # Ids are never handed out twice, so a deleted account's id cannot be
    # inherited along with its results and outstanding tokens.
    sqlite_autoincrement=True,
)

_app_settings = Table(
    "app_settings",
    _metadata,
    Column("id", Integer, primary_key=True),
    Column("setup_completed", Integer, nullable=False, server_default="0"),
    CheckConstraint("id = 1", name="ck_app_settings_single_row"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and the app_settings row.

    Usage:
        store = UserStore("sqlite:///quizdesk.db")
        uid = store.create_user(User(name="Ada", email="ada@example.com", role="student",
                                     hashed_password=hash_password("secret")))
        user = store.get_by_email_and_role("ada@example.com", "student")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._ensure_app_settings()

    def _ensure_app_settings(self) -> None:
        """Seed the single app_settings row if it does not exist yet.

        Idempotent -- safe to call on every startup.
        """
        with self.engine.connect() as conn:
            row = conn.execute(select(_app_settings.c.id).where(_app_settings.c.id == 1)).fetchone()
            if row is None:
                conn.execute(_app_settings.insert().values(id=1, setup_completed=0))
                conn.commit()

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers translate that into Conflict.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by normalized email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email_and_role(self, email: str, role: str) -> User | None:
        """Look up a user by (email, role). Login uses this, not get_by_email()."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.email == email) & (_users.c.role == role))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_many(self, user_ids: list[int]) -> dict[int, User]:
        """Return {id: User} for the given ids. Missing ids are simply absent."""
        if not user_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(set(user_ids)))).fetchall()
        return {row.id: _row_to_user(row) for row in rows}

    def list_by_role(self, role: str) -> list[User]:
        """Return all users with the given role, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(_users.c.role == role).order_by(_users.c.id)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_by_role(self, role: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_users).where(_users.c.role == role)
            ).scalar()
        return result or 0

    def update_profile(self, user_id: int, **fields) -> bool:
        """Update name and/or email on an existing user.

        Only name and email are accepted -- role and hashed_password have no
        update path through this method. Unknown keys raise ValueError.

        Returns True if a row was updated, False if user_id was not found.
        Raises IntegrityError if the new email collides with another user.
        """
        unknown = set(fields) - {"name", "email"}
        if unknown:
            raise ValueError(f"Unsupported profile fields: {unknown!r}")
        if not fields:
            return self.get_by_id(user_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int, role: str | None = None) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        When role is given, only a user with that role is deleted. Admin
        routes pass role="student" so an admin account can never be removed
        through the student-management endpoint.

        Results owned by the user are left in place; the ledger is append-only.
        """
        condition = _users.c.id == user_id
        if role is not None:
            condition = condition & (_users.c.role == role)
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(condition))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # App settings
    # ------------------------------------------------------------------

    def is_setup_complete(self) -> bool:
        with self.engine.connect() as conn:
            value = conn.execute(
                select(_app_settings.c.setup_completed).where(_app_settings.c.id == 1)
            ).scalar()
        return bool(value)

    def mark_setup_complete(self) -> None:
        """Record that first-run setup has happened. One-way: there is no reset."""
        with self.engine.connect() as conn:
            conn.execute(_app_settings.update().where(_app_settings.c.id == 1).values(setup_completed=1))
            conn.commit()

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
    )
