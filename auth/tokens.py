"""
auth/tokens.py -- Password hashing, session token and user id generation.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). The portal this replaces
       stored and compared passwords in cleartext; that is treated as a defect
       and not reproduced. The _DUMMY_HASH constant enables timing
       equalization so response time does not reveal whether a username
       exists.

  Session tokens: secrets.token_urlsafe(32) gives 256 bits of entropy. Tokens
       are opaque bearer values stored server-side; nothing is encoded in them.

  User ids: uuid4 strings. Generated at provisioning time, or at login for
       legacy rows that never had one.

Layer rule: no imports from api/, chapters/, or editor/.
"""

from __future__ import annotations

import logging
import secrets
import uuid

import bcrypt

logger = logging.getLogger("chapterportal.auth")

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


# bcrypt only looks at the first 72 bytes; current releases refuse longer input.
MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError for passwords over MAX_PASSWORD_BYTES of UTF-8.
    """
    if password_too_long(plain):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    An over-length password can never have been hashed, so it is a plain
    mismatch. A malformed stored hash (e.g. a row imported with a cleartext
    password) also counts as a mismatch rather than an error.
    """
    if password_too_long(plain):
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


# Computed once at module load so the first failed login is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("chapterportal_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run one bcrypt verification against a throwaway hash.

    Called when no user row matched so an unknown username costs the same
    as a wrong password.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def generate_user_id() -> str:
    return str(uuid.uuid4())
