"""
auth/service.py -- Action dispatch for login, logout and session validation.

Every operation returns an AuthResult, which serializes to the uniform
envelope the portal front end expects:

    {"success": bool, "message": str, "user"?: {...}, "sessionToken"?: str}

Failure messages are deliberately generic. Unknown usernames and wrong
passwords produce the same text, and a missing session reads the same as an
expired one.

Layer rule: no imports from api/, chapters/, or editor/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.models import User
from auth.sessions import SessionManager
from auth.store import AuthStore
from auth.tokens import (
    burn_password_check,
    generate_session_token,
    generate_user_id,
    hash_password,
    verify_password,
)

logger = logging.getLogger("chapterportal.auth")

MSG_LOGIN_OK = "Login successful"
MSG_BAD_CREDENTIALS = "Invalid username or password"
MSG_MISSING_CREDENTIALS = "Username and password are required"
MSG_LOGGED_OUT = "Logged out successfully"
MSG_SESSION_OK = "Session is valid"
MSG_SESSION_INVALID = "Invalid or expired session"
MSG_INVALID_ACTION = "Invalid action"

ACTIONS = ("login", "logout", "validateSession")


@dataclass
class AuthResult:
    success: bool
    message: str
    user: dict | None = None
    session_token: str | None = None

    def to_envelope(self) -> dict:
        envelope: dict = {"success": self.success, "message": self.message}
        if self.user is not None:
            envelope["user"] = self.user
        if self.session_token is not None:
            envelope["sessionToken"] = self.session_token
        return envelope


def user_snapshot(user: User) -> dict:
    """Build the client-facing user object stored in the session row."""
    return {
        "id": user.user_id or generate_user_id(),
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "chapterId": user.chapter_id,
    }


def provision_user(
    store: AuthStore,
    username: str,
    password: str,
    role: str,
    email: str = "",
    chapter_id: str | None = None,
) -> User:
    """Create a user row with a hashed password and a fresh opaque id.

    Used by the admin CLI and the first-run bootstrap. Does not check for an
    existing row with the same username. Raises ValueError, before anything
    is written, when the password is too long to hash.
    """
    user = User(
        username=username,
        password_hash=hash_password(password),
        role=role,
        email=email,
        user_id=generate_user_id(),
        chapter_id=chapter_id or None,
    )
    user.id = store.create_user(user)
    logger.info("Provisioned %s user %r", role, username)
    return user


class AuthService:
    """Login, logout and validateSession over an injected store.

    Usage:
        service = AuthService(store, SessionManager(store))
        result = service.handle("login", username="admin", password="admin123")
        result.to_envelope()
    """

    def __init__(self, store: AuthStore, sessions: SessionManager) -> None:
        self._store = store
        self.sessions = sessions

    def handle(
        self,
        action: str | None,
        username: str | None = None,
        password: str | None = None,
        session_token: str | None = None,
    ) -> AuthResult:
        """Dispatch one action envelope. Storage faults propagate to the caller."""
        if action == "login":
            return self.login(username, password)
        if action == "logout":
            return self.logout(session_token)
        if action == "validateSession":
            return self.validate_session(session_token)
        logger.info("Rejected unknown auth action %r", action)
        return AuthResult(False, MSG_INVALID_ACTION)

    def login(self, username: str | None, password: str | None) -> AuthResult:
        """Authenticate and open a session.

        Candidate rows are tried in row order; the first whose password
        verifies wins. When there are no candidates a dummy bcrypt check
        still runs so timing does not reveal whether the username exists.
        """
        if not username or not password:
            return AuthResult(False, MSG_MISSING_CREDENTIALS)

        candidates = self._store.find_users(username)
        if not candidates:
            burn_password_check(password)
            logger.info("Failed login for %r", username)
            return AuthResult(False, MSG_BAD_CREDENTIALS)

        matched = next((u for u in candidates if verify_password(password, u.password_hash)), None)
        if matched is None:
            logger.info("Failed login for %r", username)
            return AuthResult(False, MSG_BAD_CREDENTIALS)
        if len(candidates) > 1:
            logger.warning("Username %r has %d user rows; using row %s", username, len(candidates), matched.id)

        snapshot = user_snapshot(matched)
        token = generate_session_token()
        self.sessions.store(token, snapshot)
        logger.info("User %r logged in", username)
        return AuthResult(True, MSG_LOGIN_OK, user=snapshot, session_token=token)

    def logout(self, session_token: str | None) -> AuthResult:
        """End a session. Succeeds whether or not the token existed."""
        if session_token:
            self.sessions.revoke(session_token)
        return AuthResult(True, MSG_LOGGED_OUT)

    def validate_session(self, session_token: str | None) -> AuthResult:
        """Return the login-time user snapshot for a live session."""
        if not session_token:
            return AuthResult(False, MSG_SESSION_INVALID)
        session = self.sessions.get(session_token)
        if session is None or self.sessions.is_expired(session):
            return AuthResult(False, MSG_SESSION_INVALID)
        return AuthResult(True, MSG_SESSION_OK, user=session.user)
