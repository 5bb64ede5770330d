"""AI-generated answer explanations."""

import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from toeic_admin.core.config import get_settings
from toeic_admin.core.exceptions import ToeicAdminError
from toeic_admin.core.models import Question
from toeic_admin.data.api_client import ToeicApiClient

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


def explanation_request(question: Question) -> Dict[str, Any]:
    """Request item for one question."""
    return {
        "questionNumber": question.question_number,
        "questionText": question.question_text or "",
        "options": {letter: text or "" for letter, text in question.options.items()},
        "correctAnswer": question.correct_answer or "",
    }


class AIExplanationService:
    """
    Fills in missing explanations through the backend's AI endpoint.

    The endpoint is rate limited, so questions go out in batches with a pause
    between requests.
    """

    def __init__(
        self,
        api_client: ToeicApiClient,
        batch_size: Optional[int] = None,
        delay_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        batch_config = get_settings().batch
        self.api = api_client
        self.batch_size = max(1, batch_size or batch_config.ai_batch_size)
        self.delay_seconds = (
            batch_config.ai_batch_delay_seconds if delay_seconds is None else delay_seconds
        )
        self.sleep = sleep

    def generate_explanations(
        self,
        questions: Sequence[Question],
        progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Write AI explanations into ``questions`` in place.

        Questions that already carry an explanation are left alone. A batch
        that fails is logged and skipped; the remaining batches still run.

        Args:
            questions: Questions to explain, in display order
            progress: Called with (questions processed, total) after each batch

        Returns:
            Number of questions that received an explanation
        """
        total = len(questions)
        explained = 0

        for batch_start in range(0, total, self.batch_size):
            batch_end = min(batch_start + self.batch_size, total)
            pending = [q for q in questions[batch_start:batch_end] if not (q.explanation or "").strip()]

            if not pending:
                if progress:
                    progress(batch_end, total)
                continue

            try:
                explained += self._explain_batch(pending)
            except ToeicAdminError as e:
                logger.warning(
                    "AI explanation batch failed",
                    first_question=pending[0].question_number,
                    size=len(pending),
                    error=e.message,
                )

            if progress:
                progress(batch_end, total)

            if batch_end < total and self.delay_seconds > 0:
                self.sleep(self.delay_seconds)

        logger.info("AI explanations generated", explained=explained, total=total)
        return explained

    def _explain_batch(self, pending: List[Question]) -> int:
        body = self.api.post(
            "/ai/generate-batch-explanations",
            json={"questions": [explanation_request(q) for q in pending]},
        )
        explanations = body.get("explanations") or []
        by_number = {q.question_number: q for q in pending}

        count = 0
        for index, item in enumerate(explanations):
            if not isinstance(item, dict) or not item.get("explanation"):
                continue
            number = item.get("questionNumber")
            if number is None and index < len(pending):
                number = pending[index].question_number
            question = by_number.get(number)
            if question is not None:
                question.explanation = item["explanation"]
                count += 1
        return count
