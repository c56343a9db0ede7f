"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost no logic). Stores and the
auth service do the work; these types only own shape.

Layer rule: no imports from api/, chapters/, or editor/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A provisioned portal account.

    username is NOT unique at the storage level. When two rows share a
    username, login tries them in row order and the first whose password
    verifies wins (see AuthService.login).

    user_id is the opaque identifier handed to clients. Legacy rows may not
    carry one; login then generates a fresh id for the session snapshot only.

    chapter_id ties a chapter account to the one chapter it may edit. Admins
    usually leave it empty.
    """

    username: str
    password_hash: str
    role: str  # "admin", "chapter"
    email: str = ""
    user_id: str | None = None
    chapter_id: str | None = None
    id: int | None = None  # row position, set by the store
    created_at: str | None = None


@dataclass
class Session:
    """A bearer session issued at login.

    user is the snapshot taken at login time:
        {"id", "username", "email", "role", "chapterId"}
    It is never re-read from the user table, so later edits to the user row
    are not reflected until the next login.
    """

    token: str
    user: dict
    created_at: datetime
    expires_at: datetime
