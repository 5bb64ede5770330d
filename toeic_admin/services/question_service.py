"""
Question management.

Besides plain CRUD this keeps grouped questions consistent: a passage edited
on one Part 6 question is pushed to the rest of its block, and a passage
edited on a group is pushed to every question of the group.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

from toeic_admin.core.catalog import default_first_question
from toeic_admin.core.exceptions import BatchOperationError, ValidationError
from toeic_admin.core.messages import notify
from toeic_admin.core.models import (
    BatchResult,
    ImportMode,
    ImportResult,
    Part,
    Question,
    QuestionInput,
)
from toeic_admin.data.api_client import ToeicApiClient
from toeic_admin.services.media_service import MediaService
from toeic_admin.utils.passages import compose_passage, questions_in_group, sort_questions
from toeic_admin.utils.reliability import fan_out

logger = structlog.get_logger(__name__)

QuestionValues = Union[QuestionInput, Question, Dict[str, Any]]


def _payload(values: QuestionValues) -> Dict[str, Any]:
    """Wire payload for question fields given as a model or a camelCase dict."""
    if isinstance(values, Question):
        return values.to_payload(exclude={"id", "part_id"})
    return dict(values)


class QuestionService:
    """Questions of a single part, and the passage bookkeeping around them."""

    def __init__(
        self,
        api_client: ToeicApiClient,
        media_service: Optional[MediaService] = None,
        max_workers: Optional[int] = None,
    ):
        self.api = api_client
        self.media = media_service or MediaService(api_client)
        self.max_workers = max_workers

    def list_questions(self, part_id: str) -> List[Question]:
        body = self.api.get(f"/parts/{part_id}/questions")
        return sort_questions(Question.model_validate(q) for q in body.get("questions") or [])

    def next_question_number(self, part_id: str, part_number: int) -> int:
        """Number to suggest for the next question entered into a part."""
        questions = self.list_questions(part_id)
        if not questions:
            return default_first_question(part_number)
        return max(q.question_number for q in questions) + 1

    def create_question(self, part_id: str, question: QuestionValues) -> Optional[Question]:
        body = self.api.post(f"/parts/{part_id}/questions", json=_payload(question))
        logger.info("Question created", part_id=part_id)
        return self._record(body)

    def create_batch(
        self,
        part_id: str,
        questions: Sequence[QuestionValues],
        passage: Optional[str] = None,
        audio_url: Optional[str] = None,
        transcript: Optional[str] = None,
        mode: Optional[Union[ImportMode, str]] = None,
    ) -> int:
        """
        Create several questions with one request.

        Shared ``passage``, ``audio_url`` and ``transcript`` are applied by the
        backend to every question of the batch.

        Returns:
            Number of questions the backend reports as created
        """
        if not questions:
            raise ValidationError("No questions to create")

        payload: Dict[str, Any] = {"questions": [_payload(q) for q in questions]}
        if passage is not None:
            payload["passage"] = passage
        if audio_url is not None:
            payload["audioUrl"] = audio_url
        if transcript is not None:
            payload["transcript"] = transcript
        if mode is not None:
            payload["mode"] = ImportMode(mode).value

        body = self.api.post(f"/parts/{part_id}/questions/batch", json=payload)
        count = body.get("count")
        if count is None:
            count = len(questions)
        logger.info("Question batch created", part_id=part_id, count=count, mode=payload.get("mode"))
        return int(count)

    def update_question(self, question_id: str, values: QuestionValues) -> Optional[Question]:
        body = self.api.patch(f"/questions/{question_id}", json=_payload(values))
        logger.info("Question updated", question_id=question_id)
        return self._record(body)

    def update_with_group_sync(
        self,
        part: Part,
        question: Question,
        values: Dict[str, Any],
        questions: Iterable[Question],
    ) -> BatchResult:
        """
        Save an edited question, syncing a changed Part 6 passage to its block.

        In Part 6 the edited question receives every value while the other
        questions of its four-question block receive only the passage. Other
        parts get a single update.

        Raises:
            BatchOperationError: When any of the updates failed; updates that
                went through are not undone
        """
        values = _payload(values)
        passage = values.get("passage")

        if part.part_number == 6 and passage:
            group = questions_in_group(questions, question.question_number)
            if not any(q.id == question.id for q in group):
                group = sort_questions([*group, question])
            targets = [(q, values if q.id == question.id else {"passage": passage}) for q in group]
        else:
            targets = [(question, values)]

        result = fan_out(
            targets,
            lambda target: self.update_question(target[0].id, target[1]),
            max_workers=self.max_workers,
        )
        if not result.ok:
            raise BatchOperationError(notify("questions.sync_failed"), result=result)

        logger.info(
            "Question saved with group sync",
            question_id=question.id,
            part_number=part.part_number,
            synced=result.total,
        )
        return result

    def update_passage(
        self,
        part: Part,
        group_questions: Sequence[Question],
        passage: Optional[str] = None,
        image_files: Iterable[Union[str, Path]] = (),
        kept_image_urls: Iterable[str] = (),
    ) -> BatchResult:
        """
        Replace the passage shared by a group of questions.

        For Part 7 the passage is rebuilt from the images kept from the old
        passage followed by newly uploaded ones, then any ``passage`` text.
        All uploads finish before any question is touched.

        Raises:
            ValidationError: If the group is empty
            UploadError: If an image upload fails
            BatchOperationError: If any question could not be updated
        """
        if not group_questions:
            raise ValidationError(notify("questions.select_one"))

        if part.part_number == 7:
            urls = list(kept_image_urls)
            urls.extend(self.media.upload_image(path) for path in image_files)
            content = compose_passage(image_urls=urls, text=passage)
        else:
            content = passage or ""

        result = fan_out(
            list(group_questions),
            lambda q: self.update_question(q.id, {"passage": content}),
            max_workers=self.max_workers,
        )
        if not result.ok:
            raise BatchOperationError(
                notify("questions.batch_failed", failed=result.failed, total=result.total),
                result=result,
            )
        logger.info("Passage updated", part_id=part.id, questions=result.total)
        return result

    def delete_questions(self, question_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(question_ids))
        if not ids:
            raise ValidationError(notify("questions.select_one"))
        self.api.delete("/questions/bulk", json={"questionIds": ids})
        logger.info("Questions deleted", count=len(ids))
        return len(ids)

    def delete_all(self, part_id: str) -> None:
        self.api.delete(f"/parts/{part_id}/questions")
        logger.info("All questions deleted", part_id=part_id)

    def import_questions(
        self,
        part_id: str,
        file_path: Union[str, Path],
        mode: Union[ImportMode, str] = ImportMode.APPEND,
    ) -> ImportResult:
        """Upload a spreadsheet for the backend to import."""
        mode_value = ImportMode(mode).value
        body = self.api.upload(
            f"/parts/{part_id}/questions/import", "file", Path(file_path), data={"mode": mode_value}
        )
        result = ImportResult(count=body.get("count") or 0, mode=mode_value)
        logger.info("Questions imported", part_id=part_id, count=result.count, mode=mode_value)
        return result

    @staticmethod
    def check_duplicate_range(
        existing: Iterable[int],
        start: int,
        end: int,
        search_from: int = 147,
        search_to: int = 200,
    ) -> Tuple[List[int], Optional[int]]:
        """
        Find which requested numbers are already taken.

        Returns:
            Taken numbers within ``start..end`` and, when there are any, the
            first free number in ``search_from..search_to`` (``search_from``
            if all are taken)
        """
        taken = set(existing)
        duplicates = [n for n in range(start, end + 1) if n in taken]
        if not duplicates:
            return [], None
        suggestion = next(
            (n for n in range(search_from, search_to + 1) if n not in taken), search_from
        )
        return duplicates, suggestion

    @staticmethod
    def _record(body: Dict[str, Any]) -> Optional[Question]:
        data = body.get("question") or body.get("data")
        return Question.model_validate(data) if data else None
