"""Exam ("test") management."""

from typing import Any, Dict, Optional, Tuple

import structlog

from toeic_admin.core.models import (
    Difficulty,
    Page,
    Pagination,
    Test,
    TestInput,
    TestStats,
    TestStatus,
    TestType,
)
from toeic_admin.data.api_client import ToeicApiClient

logger = structlog.get_logger(__name__)

ALL = "ALL"

CREATE_DEFAULTS = {
    "test_type": TestType.LISTENING,
    "difficulty": Difficulty.MEDIUM,
    "status": TestStatus.LOCKED,
    "duration": 120,
    "total_questions": 100,
}


def _filter_value(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if not value or value.upper() == ALL:
        return None
    return value


class ExamService:
    """CRUD over the exam bank."""

    def __init__(self, api_client: ToeicApiClient):
        self.api = api_client

    def list_tests(
        self,
        page: int = 1,
        limit: int = 10,
        difficulty: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[Page[Test], TestStats]:
        """
        Fetch one page of exams.

        Filters set to ``"ALL"`` (or left empty) are not sent. The stats total
        comes from the pagination; locked/unlocked are counted on this page.
        """
        params: Dict[str, Any] = {"page": page, "limit": limit}
        for key, value in (("difficulty", difficulty), ("status", status)):
            value = _filter_value(value)
            if value:
                params[key] = value.upper()
        if search and search.strip():
            params["search"] = search.strip()

        body = self.api.get("/tests", params=params)
        tests = [Test.model_validate(item) for item in body.get("tests") or []]
        pagination = Pagination.model_validate(
            body.get("pagination") or {"page": page, "limit": limit, "total": len(tests)}
        )

        stats = TestStats(
            total=pagination.total,
            locked=sum(1 for t in tests if t.status == TestStatus.LOCKED.value),
            unlocked=sum(1 for t in tests if t.status == TestStatus.UNLOCKED.value),
        )
        logger.debug("Tests listed", count=len(tests), total=pagination.total, filters=params)
        return Page[Test](items=tests, pagination=pagination), stats

    def get_test(self, test_id: str) -> Test:
        body = self.api.get(f"/tests/{test_id}")
        return Test.model_validate(body.get("data") or body.get("test") or {})

    def create_test(self, values: TestInput) -> Optional[Test]:
        """Create an exam, filling unset fields with the form defaults."""
        payload = {**TestInput(**CREATE_DEFAULTS).to_payload(), **values.to_payload()}
        body = self.api.post("/tests", json=payload)
        logger.info("Test created", title=payload.get("title"))
        return self._record(body)

    def update_test(self, test_id: str, values: TestInput) -> Optional[Test]:
        body = self.api.patch(f"/tests/{test_id}", json=values.to_payload())
        logger.info("Test updated", test_id=test_id)
        return self._record(body)

    def delete_test(self, test_id: str) -> None:
        self.api.delete(f"/tests/{test_id}")
        logger.info("Test deleted", test_id=test_id)

    @staticmethod
    def _record(body: Dict[str, Any]) -> Optional[Test]:
        data = body.get("data") or body.get("test")
        return Test.model_validate(data) if data else None
