"""
auth/sessions.py -- Session lifecycle on top of an AuthStore.

Rules:
  - TTL is fixed at creation (default 24h) and never refreshed by use.
  - A session is expired when expires_at < now.
  - Storing a new session sweeps every already-expired session first, so the
    table cannot grow without bound even if nobody logs out.
  - Logout (revoke) and the sweep are the only removal paths. Looking up an
    expired session does not delete it.

Layer rule: no imports from api/, chapters/, or editor/.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from auth.models import Session
from auth.store import AuthStore
from core.clock import Clock, utc_now

logger = logging.getLogger("chapterportal.sessions")

SESSION_TTL = timedelta(hours=24)


class SessionManager:
    def __init__(self, store: AuthStore, ttl: timedelta = SESSION_TTL, clock: Clock = utc_now) -> None:
        self._store = store
        self.ttl = ttl
        self._clock = clock

    def store(self, token: str, user: dict) -> Session:
        """Persist a new session for the given user snapshot and sweep expired ones."""
        now = self._clock()
        session = Session(token=token, user=user, created_at=now, expires_at=now + self.ttl)
        self._store.create_session(session)
        self.cleanup_expired()
        return session

    def get(self, token: str) -> Session | None:
        return self._store.get_session(token)

    def is_expired(self, session: Session) -> bool:
        return session.expires_at < self._clock()

    def cleanup_expired(self) -> int:
        removed = self._store.sweep_expired(self._clock())
        if removed:
            logger.info("Swept %d expired session(s)", removed)
        return removed

    def revoke(self, token: str) -> bool:
        return self._store.delete_session(token)
