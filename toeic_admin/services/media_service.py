"""Image, audio and avatar uploads."""

from pathlib import Path
from typing import Optional, Union

import structlog

from toeic_admin.core.exceptions import UploadError
from toeic_admin.core.messages import notify
from toeic_admin.core.models import UploadResult, User
from toeic_admin.data.api_client import ToeicApiClient
from toeic_admin.data.session_store import SessionStore

logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


class MediaService:
    """Uploads files and returns the URLs the backend stored them under."""

    def __init__(self, api_client: ToeicApiClient, session_store: Optional[SessionStore] = None):
        self.api = api_client
        self.store = session_store

    def _upload(self, path: str, field: str, file_path: PathLike) -> UploadResult:
        body = self.api.upload(path, field, Path(file_path))
        url = body.get("url") if isinstance(body, dict) else None
        if not url:
            raise UploadError(
                (body or {}).get("message") or notify("media.upload_failed"),
                details={"path": str(file_path), "endpoint": path},
            )
        logger.info("File uploaded", endpoint=path, file=Path(file_path).name, url=url)
        return UploadResult.model_validate(body)

    def upload_image(self, file_path: PathLike) -> str:
        return self._upload("/upload/image", "image", file_path).url

    def upload_audio(self, file_path: PathLike) -> str:
        return self._upload("/upload/audio", "audio", file_path).url

    def upload_avatar(self, file_path: PathLike) -> User:
        """Replace the logged-in admin's avatar and refresh the stored user."""
        body = self.api.upload("/users/avatar", "avatar", Path(file_path))
        if body.get("dryRun") and self.store is not None:
            session = self.store.load()
            if session is not None:
                return session.user
        user_data = body.get("user") if isinstance(body, dict) else None
        if not user_data:
            raise UploadError(
                (body or {}).get("message") or notify("media.upload_failed"),
                details={"path": str(file_path), "endpoint": "/users/avatar"},
            )
        user = User.model_validate(user_data)
        if self.store is not None:
            self.store.update_user(user)
        logger.info("Avatar updated", email=user.email)
        return user
