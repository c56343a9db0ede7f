"""Tests for core/config.py validators and the first-run bootstrap in api/main.py."""

import pytest
from pydantic import ValidationError

from api.main import bootstrap_admin, build_auth_store
from auth.service import AuthService
from auth.sessions import SessionManager
from auth.store import MemoryAuthStore, SqlAuthStore
from core.config import Settings


def test_defaults():
    settings = Settings()
    assert settings.session_ttl_hours == 24
    assert settings.auth_backend == "sql"


def test_bootstrap_username_requires_password():
    with pytest.raises(ValidationError):
        Settings(bootstrap_admin_username="admin", bootstrap_admin_password="")


@pytest.mark.parametrize("ttl", [0, -5])
def test_ttl_must_be_positive(ttl):
    with pytest.raises(ValidationError):
        Settings(session_ttl_hours=ttl)


def test_unknown_backend_rejected():
    with pytest.raises(ValidationError):
        Settings(auth_backend="spreadsheet")


def test_build_auth_store_memory():
    assert isinstance(build_auth_store(Settings(auth_backend="memory")), MemoryAuthStore)


def test_build_auth_store_sql():
    store = build_auth_store(Settings(auth_db_url="sqlite:///:memory:"))
    try:
        assert isinstance(store, SqlAuthStore)
    finally:
        store.close()


def test_bootstrap_admin_seeds_empty_store():
    store = MemoryAuthStore()
    settings = Settings(bootstrap_admin_username="admin", bootstrap_admin_password="admin123")

    assert bootstrap_admin(store, settings) is True
    result = AuthService(store, SessionManager(store)).login("admin", "admin123")
    assert result.success is True
    assert result.user["role"] == "admin"

    # A populated store is left alone.
    assert bootstrap_admin(store, settings) is False
    assert len(store.list_users()) == 1


def test_bootstrap_admin_disabled_without_username():
    store = MemoryAuthStore()
    assert bootstrap_admin(store, Settings()) is False
    assert store.has_users() is False
