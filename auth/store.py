"""
auth/store.py -- Persistence layer for users and sessions.

Pattern: Repository + Data Mapper. AuthStore is the interface the auth
service depends on; SqlAuthStore and MemoryAuthStore are the two
repositories; _row_to_user / _row_to_session are the mappers.
Route and service code never touches SQL directly.

Backends:
  SqlAuthStore     SQLAlchemy Core. Sessions are keyed by token (primary key)
                   and indexed on expires_at, so lookups are O(1)-ish and the
                   expiry sweep is a single bound DELETE.
  MemoryAuthStore  Dicts keyed by username and token plus a min-heap of
                   (expires_at, token) for the sweep. Single-process only.

Security:
  All queries use bound parameters. No f-strings in SQL.

  username is deliberately NOT declared UNIQUE. Provisioning may create
  duplicate rows; find_users() returns them in insertion order and the
  service takes the first whose password verifies.

DB path: auth/chapterportal_auth.db by default.

Layer rule: no imports from api/, chapters/, or editor/.
"""

from __future__ import annotations

import heapq
import json
from datetime import datetime
from pathlib import Path
from typing import Protocol

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import Session, User
from core.clock import from_iso, to_iso, utc_now

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'chapterportal_auth.db'}"

# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class AuthStore(Protocol):
    """Storage operations the auth service and session manager rely on."""

    def find_users(self, username: str) -> list[User]: ...

    def create_user(self, user: User) -> int: ...

    def has_users(self) -> bool: ...

    def list_users(self) -> list[User]: ...

    def update_user(self, row_id: int, **fields) -> bool: ...

    def create_session(self, session: Session) -> None: ...

    def get_session(self, token: str) -> Session | None: ...

    def delete_session(self, token: str) -> bool: ...

    def count_sessions(self) -> int: ...

    def sweep_expired(self, now: datetime) -> int: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, index=True),  # not unique, see module docstring
    Column("password_hash", Text, nullable=False),
    Column("email", String(255), nullable=False, server_default=""),
    Column("role", String(30), nullable=False, server_default="chapter"),
    Column("user_id", String(64)),  # opaque id handed to clients; NULL on legacy rows
    Column("chapter_id", String(64)),
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("token", String(128), primary_key=True),
    Column("user_json", Text, nullable=False),  # snapshot taken at login
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Index("ix_sessions_expires_at", "expires_at"),
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
# SQL repository
# ---------------------------------------------------------------------------


class SqlAuthStore:
    """SQLAlchemy Core repository for User and Session entities.

    Usage:
        store = SqlAuthStore()
        store.create_user(User(username="admin", role="admin", password_hash=hash_password("secret")))
        candidates = store.find_users("admin")
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

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_users(self, username: str) -> list[User]:
        """Return every row with this exact username (case-sensitive), oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(_users.c.username == username).order_by(_users.c.id)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def create_user(self, user: User) -> int:
        """Insert a user row and return its row id. Duplicate usernames are accepted."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    password_hash=user.password_hash,
                    email=user.email,
                    role=user.role,
                    user_id=user.user_id,
                    chapter_id=user.chapter_id,
                    created_at=to_iso(utc_now()),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def has_users(self) -> bool:
        """Return True if at least one user row exists. Drives the bootstrap step."""
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (count or 0) > 0

    def list_users(self) -> list[User]:
        """Return all users in row order. Admin CLI only."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, row_id: int, **fields) -> bool:
        """Update columns on one user row. Returns True if the row existed.

        Sessions already issued keep their login-time snapshot.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == row_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, session: Session) -> None:
        """Insert a session row.

        A token collision raises sqlalchemy.exc.IntegrityError. Tokens carry
        256 bits of entropy, so this is treated as a server fault, not a
        condition to recover from.
        """
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    token=session.token,
                    user_json=json.dumps(session.user),
                    created_at=to_iso(session.created_at),
                    expires_at=to_iso(session.expires_at),
                )
            )
            conn.commit()

    def get_session(self, token: str) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.token == token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_session(self, token: str) -> bool:
        """Delete one session. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.token == token))
            conn.commit()
        return result.rowcount > 0

    def count_sessions(self) -> int:
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(_sessions)).scalar()
        return count or 0

    def sweep_expired(self, now: datetime) -> int:
        """Delete every session whose expiry is before now. Returns rows removed.

        expires_at is stored with fixed-width UTC ISO 8601, so the string
        comparison matches datetime ordering.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at < to_iso(now)))
            conn.commit()
        return result.rowcount

    def ping(self) -> bool:
        """Cheap round-trip used by the health endpoint."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------


class MemoryAuthStore:
    """Process-local repository with hash-map lookups.

    _users_by_name keeps rows per username in insertion order so the
    first-row-wins rule holds exactly as in the SQL backend.

    _expiry_heap may hold entries for sessions already removed by logout.
    The sweep skips those by checking the token is still present with the
    same expiry.
    """

    def __init__(self) -> None:
        self._users: list[User] = []
        self._users_by_name: dict[str, list[User]] = {}
        self._sessions: dict[str, Session] = {}
        self._expiry_heap: list[tuple[datetime, str]] = []

    def find_users(self, username: str) -> list[User]:
        return list(self._users_by_name.get(username, []))

    def create_user(self, user: User) -> int:
        user.id = len(self._users) + 1
        user.created_at = to_iso(utc_now())
        self._users.append(user)
        self._users_by_name.setdefault(user.username, []).append(user)
        return user.id

    def has_users(self) -> bool:
        return bool(self._users)

    def list_users(self) -> list[User]:
        return list(self._users)

    def update_user(self, row_id: int, **fields) -> bool:
        if not 1 <= row_id <= len(self._users):
            return False
        user = self._users[row_id - 1]
        if "username" in fields and fields["username"] != user.username:
            self._users_by_name[user.username].remove(user)
            same_name = self._users_by_name.setdefault(fields["username"], [])
            same_name.append(user)
            same_name.sort(key=lambda u: u.id)
        for name, value in fields.items():
            setattr(user, name, value)
        return True

    def create_session(self, session: Session) -> None:
        self._sessions[session.token] = session
        heapq.heappush(self._expiry_heap, (session.expires_at, session.token))

    def get_session(self, token: str) -> Session | None:
        return self._sessions.get(token)

    def delete_session(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    def count_sessions(self) -> int:
        return len(self._sessions)

    def sweep_expired(self, now: datetime) -> int:
        removed = 0
        while self._expiry_heap and self._expiry_heap[0][0] < now:
            expires_at, token = heapq.heappop(self._expiry_heap)
            current = self._sessions.get(token)
            if current is not None and current.expires_at == expires_at:
                del self._sessions[token]
                removed += 1
        return removed

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        self._sessions.clear()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        email=row.email or "",
        role=row.role,
        user_id=row.user_id,
        chapter_id=row.chapter_id,
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        token=row.token,
        user=json.loads(row.user_json),
        created_at=from_iso(row.created_at),
        expires_at=from_iso(row.expires_at),
    )
