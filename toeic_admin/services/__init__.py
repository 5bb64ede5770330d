"""Services for each backend resource and the per-part question flows."""

from .auth_service import AuthService
from .exam_service import ExamService
from .part_service import PartService
from .question_service import QuestionService

__all__ = ["AuthService", "ExamService", "PartService", "QuestionService"]
