"""Unit tests for auth/service.py -- login, logout, validateSession and dispatch.

Covers:
- login success returns a token and a snapshot matching the stored row
- unknown user and wrong password produce the same message
- missing credentials and unknown actions fail without touching sessions
- duplicate usernames: first row whose password verifies wins
- rows without a stored user id get a generated id in the snapshot
- validateSession returns the login-time snapshot, even after the row changes
- expiry and logout both invalidate the token; logout is idempotent
- envelope serialization omits absent optional keys
"""

import logging
from unittest.mock import patch

import pytest

from auth.models import User
from auth.service import (
    MSG_BAD_CREDENTIALS,
    MSG_INVALID_ACTION,
    MSG_LOGGED_OUT,
    MSG_MISSING_CREDENTIALS,
    MSG_SESSION_INVALID,
    AuthResult,
    AuthService,
    provision_user,
)
from auth.sessions import SessionManager
from auth.tokens import hash_password


@pytest.fixture
def service(auth_store, clock):
    provision_user(auth_store, "admin", "admin123", role="admin", email="admin@example.org")
    provision_user(auth_store, "qc-lead", "qcpass123", role="chapter", email="qc@example.org", chapter_id="qc")
    return AuthService(auth_store, SessionManager(auth_store, clock=clock))


class TestLogin:
    def test_success(self, service, auth_store):
        result = service.login("admin", "admin123")
        assert result.success is True
        assert result.session_token
        stored = auth_store.find_users("admin")[0]
        assert result.user == {
            "id": stored.user_id,
            "username": "admin",
            "email": "admin@example.org",
            "role": "admin",
            "chapterId": None,
        }

    def test_chapter_user_snapshot_has_chapter(self, service):
        result = service.login("qc-lead", "qcpass123")
        assert result.success
        assert result.user["role"] == "chapter"
        assert result.user["chapterId"] == "qc"

    def test_wrong_password_and_unknown_user_look_the_same(self, service):
        wrong = service.login("admin", "wrong")
        unknown = service.login("nobody", "admin123")
        assert wrong.success is False and unknown.success is False
        assert wrong.message == unknown.message == MSG_BAD_CREDENTIALS
        assert wrong.session_token is None and unknown.session_token is None

    def test_unknown_user_still_runs_bcrypt(self, service):
        with patch("auth.service.burn_password_check") as burn:
            service.login("nobody", "whatever")
        burn.assert_called_once_with("whatever")

    def test_username_is_case_sensitive(self, service):
        assert service.login("Admin", "admin123").success is False

    def test_over_length_password_is_a_plain_mismatch(self, service, caplog):
        with caplog.at_level(logging.WARNING, logger="chapterportal.auth"):
            result = service.login("admin", "é" * 40)
        assert result.message == MSG_BAD_CREDENTIALS
        assert "not a valid bcrypt hash" not in caplog.text

    def test_provision_rejects_over_length_password(self, auth_store):
        before = len(auth_store.list_users())
        with pytest.raises(ValueError, match="72 bytes"):
            provision_user(auth_store, "longpw", "x" * 100, role="chapter")
        assert len(auth_store.list_users()) == before
        # Exactly 72 bytes is still accepted.
        provision_user(auth_store, "maxpw", "x" * 72, role="chapter")
        assert auth_store.find_users("maxpw")

    @pytest.mark.parametrize("username,password", [("", "x"), ("admin", ""), (None, "x"), ("admin", None)])
    def test_missing_credentials(self, service, username, password):
        result = service.login(username, password)
        assert result.success is False
        assert result.message == MSG_MISSING_CREDENTIALS

    def test_tokens_are_unique_per_login(self, service):
        first = service.login("admin", "admin123").session_token
        second = service.login("admin", "admin123").session_token
        assert first != second

    def test_duplicate_usernames_first_matching_row_wins(self, auth_store, clock):
        provision_user(auth_store, "dup", "first-pass", role="chapter", chapter_id="one")
        provision_user(auth_store, "dup", "second-pass", role="chapter", chapter_id="two")
        provision_user(auth_store, "dup", "first-pass", role="admin", chapter_id="three")
        service = AuthService(auth_store, SessionManager(auth_store, clock=clock))

        assert service.login("dup", "first-pass").user["chapterId"] == "one"
        assert service.login("dup", "second-pass").user["chapterId"] == "two"

    def test_row_without_user_id_gets_generated_id(self, auth_store, clock):
        auth_store.create_user(User(username="legacy", password_hash=hash_password("legacy123"), role="chapter"))
        service = AuthService(auth_store, SessionManager(auth_store, clock=clock))

        result = service.login("legacy", "legacy123")
        assert result.success
        assert result.user["id"]
        validated = service.validate_session(result.session_token)
        assert validated.user["id"] == result.user["id"]

    def test_non_bcrypt_stored_password_never_matches(self, auth_store, clock):
        """Rows imported with a cleartext password are rejected rather than compared."""
        auth_store.create_user(User(username="plain", password_hash="plaintext", role="chapter"))
        service = AuthService(auth_store, SessionManager(auth_store, clock=clock))
        assert service.login("plain", "plaintext").message == MSG_BAD_CREDENTIALS


class TestValidateSession:
    def test_fresh_token_is_valid(self, service):
        login = service.login("admin", "admin123")
        result = service.validate_session(login.session_token)
        assert result.success is True
        assert result.user == login.user

    def test_expired_token_is_invalid(self, service, clock):
        login = service.login("admin", "admin123")
        clock.advance(hours=24, seconds=1)
        result = service.validate_session(login.session_token)
        assert result.success is False
        assert result.message == MSG_SESSION_INVALID
        assert result.user is None

    @pytest.mark.parametrize("token", ["", None, "never-issued"])
    def test_unknown_token_is_invalid(self, service, token):
        result = service.validate_session(token)
        assert result.success is False
        assert result.message == MSG_SESSION_INVALID

    def test_snapshot_is_not_refreshed_from_user_row(self, service, auth_store):
        login = service.login("qc-lead", "qcpass123")
        row = auth_store.find_users("qc-lead")[0]
        auth_store.update_user(row.id, role="admin", chapter_id="elsewhere")

        result = service.validate_session(login.session_token)
        assert result.user["role"] == "chapter"
        assert result.user["chapterId"] == "qc"


class TestLogout:
    def test_logout_invalidates_token(self, service):
        token = service.login("admin", "admin123").session_token
        result = service.logout(token)
        assert result.success is True
        assert result.message == MSG_LOGGED_OUT
        assert service.validate_session(token).success is False

    @pytest.mark.parametrize("token", ["never-issued", "", None])
    def test_logout_is_idempotent(self, service, token):
        assert service.logout(token).success is True

    def test_logout_twice(self, service):
        token = service.login("admin", "admin123").session_token
        assert service.logout(token).success is True
        assert service.logout(token).success is True


class TestDispatch:
    def test_example_flow(self, service, clock):
        login = service.handle("login", username="admin", password="admin123")
        assert login.success and login.user["role"] == "admin"

        assert service.handle("login", username="admin", password="wrong").message == MSG_BAD_CREDENTIALS

        valid = service.handle("validateSession", session_token=login.session_token)
        assert valid.success and valid.user["id"] == login.user["id"]

        clock.advance(days=1, minutes=1)
        assert service.handle("validateSession", session_token=login.session_token).success is False

    @pytest.mark.parametrize("action", [None, "", "register", "LOGIN", "validate_session"])
    def test_unknown_action(self, service, action):
        result = service.handle(action)
        assert result.success is False
        assert result.message == MSG_INVALID_ACTION

    def test_logout_via_handle(self, service):
        token = service.handle("login", username="admin", password="admin123").session_token
        assert service.handle("logout", session_token=token).success
        assert not service.handle("validateSession", session_token=token).success


class TestEnvelope:
    def test_failure_envelope_has_only_success_and_message(self):
        assert AuthResult(False, "nope").to_envelope() == {"success": False, "message": "nope"}

    def test_login_envelope_uses_camel_case_token(self):
        env = AuthResult(True, "ok", user={"id": "1"}, session_token="t").to_envelope()
        assert env == {"success": True, "message": "ok", "user": {"id": "1"}, "sessionToken": "t"}
