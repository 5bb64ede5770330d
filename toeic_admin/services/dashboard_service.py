"""Overview counters for the dashboard."""

from typing import Optional

import structlog

from toeic_admin.core.exceptions import ApiError
from toeic_admin.core.models import DashboardStats, TestStatus
from toeic_admin.services.exam_service import ExamService
from toeic_admin.services.part_service import PartService
from toeic_admin.services.user_service import UserService
from toeic_admin.utils.reliability import fan_out

logger = structlog.get_logger(__name__)


class DashboardService:
    """
    Computes overview counts from the list endpoints.

    Each total comes from a one-row listing, so the counts are whatever the
    backend's pagination reports.
    """

    def __init__(
        self,
        exams: ExamService,
        users: UserService,
        parts: Optional[PartService] = None,
        max_workers: Optional[int] = None,
    ):
        self.exams = exams
        self.users = users
        self.parts = parts
        self.max_workers = max_workers

    def get_stats(self, include_questions: bool = False) -> DashboardStats:
        users_total = self.users.list_users(page=1, limit=1).pagination.total
        tests_page, _ = self.exams.list_tests(page=1, limit=1)
        locked_page, _ = self.exams.list_tests(page=1, limit=1, status=TestStatus.LOCKED.value)
        unlocked_page, _ = self.exams.list_tests(page=1, limit=1, status=TestStatus.UNLOCKED.value)

        stats = DashboardStats(
            users=users_total,
            tests=tests_page.pagination.total,
            locked_tests=locked_page.pagination.total,
            unlocked_tests=unlocked_page.pagination.total,
        )
        if include_questions and self.parts is not None:
            stats.questions = self.count_questions(stats.tests)

        logger.debug("Dashboard stats computed", **stats.model_dump())
        return stats

    def count_questions(self, tests_total: int) -> int:
        """Sum the questions entered in every part of every exam."""
        if tests_total <= 0:
            return 0
        page, _ = self.exams.list_tests(page=1, limit=tests_total)
        result = fan_out(
            [test.id for test in page.items],
            lambda test_id: sum(p.completed_questions for p in self.parts.list_parts(test_id)),
            max_workers=self.max_workers,
        )
        if not result.ok:
            logger.warning("Question count incomplete", failed=result.failed, errors=result.errors)
            raise ApiError(f"Could not count questions for {result.failed} exam(s)")
        return sum(result.values())
