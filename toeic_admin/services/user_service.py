"""User account management."""

from typing import Any, Dict, Optional

import structlog

from toeic_admin.core.models import Page, Pagination, Role, User, UserInput
from toeic_admin.data.api_client import ToeicApiClient

logger = structlog.get_logger(__name__)


class UserService:
    """Lists, creates and edits backend accounts."""

    def __init__(self, api_client: ToeicApiClient):
        self.api = api_client

    def list_users(
        self, page: int = 1, limit: int = 10, role: str = "ALL", search: Optional[str] = None
    ) -> Page[User]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if role and role.upper() != "ALL":
            params["role"] = Role(role.upper()).value
        if search and search.strip():
            params["search"] = search.strip()

        body = self.api.get("/users", params=params)
        users = [User.model_validate(item) for item in body.get("users") or []]
        pagination = Pagination.model_validate(
            body.get("pagination") or {"page": page, "limit": limit, "total": len(users)}
        )
        return Page[User](items=users, pagination=pagination)

    def create_user(self, values: UserInput) -> Optional[User]:
        """Create an account; new accounts are students unless a role is given."""
        payload = {"role": Role.STUDENT.value, **values.to_payload()}
        body = self.api.post("/users", json=payload)
        logger.info("User created", email=payload.get("email"), role=payload["role"])
        return self._record(body)

    def update_user(self, user_id: str, values: UserInput) -> Optional[User]:
        body = self.api.patch(f"/users/{user_id}", json=values.to_payload())
        logger.info("User updated", user_id=user_id)
        return self._record(body)

    @staticmethod
    def _record(body: Dict[str, Any]) -> Optional[User]:
        data = body.get("user") or body.get("data")
        return User.model_validate(data) if data else None
