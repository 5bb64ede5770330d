"""Admin login, logout and session checks."""

from datetime import datetime
from typing import Optional

import structlog

from toeic_admin.core.exceptions import (
    ApiError,
    AuthenticationError,
    PermissionDeniedError,
    SessionExpiredError,
)
from toeic_admin.core.messages import notify
from toeic_admin.core.models import Session, User
from toeic_admin.data.api_client import ToeicApiClient
from toeic_admin.data.session_store import SessionStore

logger = structlog.get_logger(__name__)


class AuthService:
    """Keeps the stored admin session in step with the backend."""

    def __init__(self, api_client: ToeicApiClient, session_store: SessionStore):
        self.api = api_client
        self.store = session_store

    def login(self, email: str, password: str) -> User:
        """
        Log in with email and password.

        Only ADMIN accounts are accepted; for anyone else nothing is stored.

        Raises:
            AuthenticationError: On bad credentials or an incomplete response
            PermissionDeniedError: When the account is not an admin
        """
        try:
            body = self.api.post("/auth/login", json={"email": email, "password": password})
        except AuthenticationError:
            raise
        except ApiError as e:
            if e.status_code is None:
                raise
            raise AuthenticationError(
                e.message or notify("login.failed"), status_code=e.status_code, path=e.path
            )

        if not isinstance(body, dict):
            body = {}
        user_data = body.get("user")
        token = body.get("token")
        if not user_data or not token:
            raise AuthenticationError(
                body.get("message") or notify("login.failed"), path="/auth/login"
            )

        user = User.model_validate(user_data)
        if not user.is_admin:
            logger.warning("Non-admin login rejected", email=user.email, role=user.role)
            raise PermissionDeniedError(notify("login.not_admin"), path="/auth/login")

        self.store.save(Session(token=token, user=user))
        logger.info("Logged in", email=user.email)
        return user

    def logout(self) -> None:
        self.store.clear()
        logger.info("Logged out")

    def current_user(self) -> Optional[User]:
        """The user saved at login, without contacting the backend."""
        session = self.store.load()
        return session.user if session else None

    def require_session(self, now: Optional[datetime] = None) -> Session:
        """
        Return the live session and record activity on it.

        Raises:
            AuthenticationError: When nobody is logged in
            SessionExpiredError: When the session sat idle too long (it is cleared)
        """
        session = self.store.load()
        if session is None:
            raise AuthenticationError(notify("session.missing"))

        if self.store.is_idle(session, now):
            self.store.clear()
            minutes = int(self.store.idle_timeout.total_seconds() // 60)
            logger.info("Session expired", email=session.user.email, idle_minutes=minutes)
            raise SessionExpiredError(notify("session.expired", minutes=minutes))

        return self.store.touch(now) or session

    def refresh_current_user(self) -> User:
        """Reload the logged-in user from ``/auth/me`` and store it."""
        body = self.api.get("/auth/me")
        data = body.get("data") or {}
        user = User.model_validate(data.get("user") or data)
        self.store.update_user(user)
        return user
