"""Local persistence of the admin session (bearer token and user record)."""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import structlog

from toeic_admin.core.config import SessionConfig
from toeic_admin.core.models import Session, User

logger = structlog.get_logger(__name__)


class SessionStore:
    """
    JSON file holding ``{token, user, lastActivity}``.

    The file is created with owner-only permissions. A session left idle for
    longer than the configured timeout is treated as logged out.
    """

    def __init__(self, session_file: Path, idle_timeout_seconds: int = 300):
        self.session_file = Path(session_file)
        self.idle_timeout = timedelta(seconds=idle_timeout_seconds)

    @classmethod
    def from_config(cls, config: SessionConfig) -> "SessionStore":
        return cls(config.session_file, config.idle_timeout_seconds)

    def save(self, session: Session) -> None:
        """Persist a session, replacing whatever was stored."""
        raw = {
            "token": session.token,
            "user": session.user.model_dump(by_alias=True, mode="json"),
            "lastActivity": session.last_activity.isoformat(),
        }
        self.session_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.session_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(raw, fh, indent=2)
        os.chmod(self.session_file, 0o600)
        logger.debug("Session saved", path=str(self.session_file), user=session.user.email)

    def load(self) -> Optional[Session]:
        """Return the stored session, or None when there is none or it is unreadable."""
        if not self.session_file.exists():
            return None
        try:
            raw = json.loads(self.session_file.read_text(encoding="utf-8"))
            return Session(
                token=raw["token"],
                user=User.model_validate(raw["user"]),
                last_activity=datetime.fromisoformat(raw["lastActivity"]),
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Failed to load session", path=str(self.session_file), error=str(exc))
            return None

    def clear(self) -> None:
        if self.session_file.exists():
            self.session_file.unlink()
            logger.debug("Session cleared", path=str(self.session_file))

    def touch(self, now: Optional[datetime] = None) -> Optional[Session]:
        """Record activity on the stored session."""
        session = self.load()
        if session is None:
            return None
        session.last_activity = now or datetime.utcnow()
        self.save(session)
        return session

    def update_user(self, user: User) -> Optional[Session]:
        session = self.load()
        if session is None:
            return None
        session.user = user
        self.save(session)
        return session

    def is_idle(self, session: Session, now: Optional[datetime] = None) -> bool:
        """True when the session saw no activity within the idle timeout."""
        now = now or datetime.utcnow()
        return now - session.last_activity > self.idle_timeout

    def token(self) -> Optional[str]:
        """Bearer token of the stored session, if any."""
        session = self.load()
        return session.token if session else None
