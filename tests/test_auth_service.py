"""Validate login, idle timeout and the on-disk session."""

import json
import stat
from datetime import datetime, timedelta

import httpx
import pytest

from toeic_admin.core.exceptions import (
    ApiError,
    AuthenticationError,
    PermissionDeniedError,
    SessionExpiredError,
)
from toeic_admin.core.models import Session, User
from toeic_admin.services.auth_service import AuthService

from sample_data import ADMIN_USER


class TestSessionStore:
    """Persisted session file."""

    def test_save_and_load_round_trip(self, session_store, logged_in):
        loaded = session_store.load()

        assert loaded.token == "test-token"
        assert loaded.user.email == ADMIN_USER["email"]
        assert loaded.user.is_admin

    def test_file_is_owner_only_and_camel_case(self, session_store, logged_in):
        mode = stat.S_IMODE(session_store.session_file.stat().st_mode)
        raw = json.loads(session_store.session_file.read_text())

        assert mode == 0o600
        assert set(raw) == {"token", "user", "lastActivity"}
        assert raw["user"]["email"] == ADMIN_USER["email"]

    def test_unreadable_file_counts_as_logged_out(self, session_store):
        session_store.session_file.write_text("{not json")

        assert session_store.load() is None
        assert session_store.token() is None

    def test_idle_detection(self, session_store, logged_in):
        now = logged_in.last_activity

        assert not session_store.is_idle(logged_in, now + timedelta(seconds=299))
        assert session_store.is_idle(logged_in, now + timedelta(seconds=301))

    def test_touch_moves_last_activity(self, session_store, logged_in):
        later = logged_in.last_activity + timedelta(minutes=2)

        session_store.touch(later)

        assert session_store.load().last_activity == later

    def test_clear(self, session_store, logged_in):
        session_store.clear()
        assert session_store.load() is None
        session_store.clear()  # already gone


class TestAuthService:
    """Admin login flow."""

    def setup_method(self):
        self.login_body = {"success": True, "token": "jwt-123", "user": dict(ADMIN_USER)}

    def test_admin_login_saves_session(self, backend, api_client, session_store):
        backend.add("POST", "/auth/login", self.login_body)
        auth = AuthService(api_client, session_store)

        user = auth.login("admin@toeic.test", "secret")

        assert user.email == "admin@toeic.test"
        assert session_store.token() == "jwt-123"
        assert backend.json_of(backend.requests[0]) == {
            "email": "admin@toeic.test",
            "password": "secret",
        }

    def test_non_admin_is_rejected_and_nothing_saved(self, backend, api_client, session_store):
        self.login_body["user"]["role"] = "STUDENT"
        backend.add("POST", "/auth/login", self.login_body)
        auth = AuthService(api_client, session_store)

        with pytest.raises(PermissionDeniedError, match="do not have access"):
            auth.login("student@toeic.test", "secret")

        assert session_store.load() is None

    def test_bad_credentials(self, backend, api_client, session_store):
        backend.add(
            "POST", "/auth/login", {"success": False, "message": "Invalid credentials"}, 400
        )
        auth = AuthService(api_client, session_store)

        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            auth.login("admin@toeic.test", "wrong")

    def test_response_without_token(self, backend, api_client, session_store):
        backend.add("POST", "/auth/login", {"success": True, "user": dict(ADMIN_USER)})
        auth = AuthService(api_client, session_store)

        with pytest.raises(AuthenticationError):
            auth.login("admin@toeic.test", "secret")

    def test_connection_failure_is_not_an_auth_error(self, backend, api_client, session_store):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        backend.add("POST", "/auth/login", handler=refuse)
        auth = AuthService(api_client, session_store)

        with pytest.raises(ApiError) as exc_info:
            auth.login("admin@toeic.test", "secret")

        assert not isinstance(exc_info.value, AuthenticationError)

    def test_require_session_when_logged_out(self, api_client, session_store):
        with pytest.raises(AuthenticationError, match="Not logged in"):
            AuthService(api_client, session_store).require_session()

    def test_idle_session_expires_and_is_cleared(self, api_client, session_store, logged_in):
        auth = AuthService(api_client, session_store)
        later = logged_in.last_activity + timedelta(minutes=6)

        with pytest.raises(SessionExpiredError, match="5 minutes"):
            auth.require_session(now=later)

        assert session_store.load() is None

    def test_active_session_is_touched(self, api_client, session_store, logged_in):
        auth = AuthService(api_client, session_store)
        later = logged_in.last_activity + timedelta(minutes=4)

        session = auth.require_session(now=later)

        assert session.last_activity == later
        assert session_store.load().last_activity == later

    def test_logout(self, api_client, session_store, logged_in):
        auth = AuthService(api_client, session_store)
        auth.logout()
        assert auth.current_user() is None

    def test_refresh_current_user(self, backend, api_client, session_store, logged_in):
        fresh = dict(ADMIN_USER, name="Renamed Admin")
        backend.add("GET", "/auth/me", {"success": True, "data": {"user": fresh}})
        auth = AuthService(api_client, session_store)

        user = auth.refresh_current_user()

        assert user.name == "Renamed Admin"
        assert session_store.load().user.name == "Renamed Admin"


def test_session_model_defaults_to_now():
    before = datetime.utcnow()
    session = Session(token="t", user=User.model_validate(ADMIN_USER))
    assert session.last_activity >= before
