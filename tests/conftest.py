"""
tests/conftest.py -- Shared test fixtures for chapter portal tests.

This module provides:
  - FakeClock: a settable time source for session expiry tests
  - make_auth_store(): SQL or in-memory AuthStore for unit tests
  - _make_test_stores(): isolated shared-memory DBs for the API tests
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient over the real app with seeded users

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread.

Environment overrides must be set before api.main is imported: the app reads
ALLOWED_HOSTS at import time, and TestClient sends Host: testserver.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: set before any api/ import.
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("AUTH_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.service import AuthService, provision_user
from auth.sessions import SessionManager
from auth.store import MemoryAuthStore, SqlAuthStore
from auth.tokens import hash_password
from chapters.store import ChapterStore

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable time source. Starts at a fixed instant and only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_auth_store(kind: str):
    if kind == "memory":
        return MemoryAuthStore()
    return SqlAuthStore("sqlite:///:memory:")


@pytest.fixture(params=["sql", "memory"])
def auth_store(request):
    """Every store-level test runs against both backends."""
    store = make_auth_store(request.param)
    yield store
    store.close()


def _make_test_stores(db_suffix: str) -> tuple[SqlAuthStore, ChapterStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    chapters_url = f"sqlite:///file:test_chapters_{db_suffix}?mode=memory&cache=shared&uri=true"
    return SqlAuthStore(db_url=auth_url), ChapterStore(db_url=chapters_url)


def _patch_lifespan(user_store: SqlAuthStore, chapters: ChapterStore, clock: FakeClock):
    """Return an async context manager that replaces the real lifespan.

    The session manager gets the fake clock so tests can push time past the
    TTL without sleeping.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.auth_service = AuthService(user_store, SessionManager(user_store, clock=clock))
        app.state.chapters = chapters
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, FakeClock, SqlAuthStore], None, None]:
    """Yield (client, clock, user_store) for API integration tests.

    Seeded accounts:
      admin / admin123   -- role admin, no chapter
      qc-lead / qcpass123 -- role chapter, chapter "qc"
      legacy / legacy123 -- row without a stored user id
    """
    user_store, chapters = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    clock = FakeClock()

    provision_user(user_store, "admin", "admin123", role="admin", email="admin@example.org")
    provision_user(user_store, "qc-lead", "qcpass123", role="chapter", email="qc@example.org", chapter_id="qc")
    user_store.create_user(User(username="legacy", password_hash=hash_password("legacy123"), role="chapter"))

    app.router.lifespan_context = _patch_lifespan(user_store, chapters, clock)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client, clock, user_store

    user_store.close()
    chapters.close()


def login(client: TestClient, username: str, password: str) -> dict:
    """POST a login envelope and return the decoded response body."""
    return client.post("/api/v1/auth", json={"action": "login", "username": username, "password": password}).json()
