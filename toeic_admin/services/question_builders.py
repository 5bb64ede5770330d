"""
Part-specific question entry flows.

Each TOEIC part is entered differently: Part 1 pairs every question with a
photograph, Parts 2-4 hang off shared audio, Part 5 comes from a spreadsheet,
Parts 6 and 7 attach questions to passages. The builders validate the drafts,
upload media, then create the questions.
"""

from collections import Counter
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import structlog
from pydantic import Field

from toeic_admin.core.catalog import (
    LISTENING_GROUP_SIZE,
    PART1_PROMPT,
    PART2_PROMPT,
    get_part_spec,
    validate_question_number,
)
from toeic_admin.core.exceptions import BatchOperationError, ToeicAdminError, ValidationError
from toeic_admin.core.messages import notify
from toeic_admin.core.models import (
    ApiModel,
    BatchItemResult,
    BatchResult,
    ImportMode,
    Part,
    Question,
    QuestionInput,
    normalize_answer,
)
from toeic_admin.services.ai_service import AIExplanationService
from toeic_admin.services.media_service import MediaService
from toeic_admin.services.part_service import PartService
from toeic_admin.services.question_service import QuestionService
from toeic_admin.utils.passages import audio_placeholder, combine_title, compose_passage
from toeic_admin.utils.reliability import fan_out

logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


# Drafts


class Part1Draft(ApiModel):
    """One photograph question of the Part 1 bulk form."""

    question_number: int
    image: Optional[Path] = None
    correct_answer: Optional[str] = None
    option_a: Optional[str] = None
    option_b: Optional[str] = None
    option_c: Optional[str] = None
    option_d: Optional[str] = None
    explanation: Optional[str] = None


class Part2Draft(ApiModel):
    question_number: int
    correct_answer: Optional[str] = None
    question_text: Optional[str] = None
    option_a: str = "(A)"
    option_b: str = "(B)"
    option_c: str = "(C)"
    explanation: Optional[str] = None


class Part6Passage(ApiModel):
    """A Part 6 text with the block of questions that belong to it."""

    start: int
    end: int
    passage: str
    title: Optional[str] = None
    questions: List[QuestionInput] = Field(default_factory=list)


class Part7Passage(ApiModel):
    """A Part 7 reading passage (images, text or both) and its questions."""

    passage_type: str = Field(default="image", pattern="^(image|text|both)$")
    title: Optional[str] = None
    text: Optional[str] = None
    images: List[Path] = Field(default_factory=list)
    questions: List[QuestionInput] = Field(default_factory=list)


def _require_part(part: Part, *numbers: int) -> None:
    if part.part_number not in numbers:
        expected = " or ".join(str(n) for n in numbers)
        raise ValidationError(
            f"This flow is for Part {expected}, not Part {part.part_number}",
            details={"part_id": part.id, "part_number": part.part_number},
        )


def _require_full_range(part_number: int, numbers: Sequence[int]) -> None:
    """A bulk entry must cover the part's question range exactly once."""
    spec = get_part_spec(part_number)
    counts = Counter(numbers)
    duplicates = sorted(n for n, c in counts.items() if c > 1)
    missing = [n for n in range(spec.first_question, spec.last_question + 1) if n not in counts]
    if not duplicates and not missing:
        return
    problems = []
    if duplicates:
        problems.append("duplicated: " + ", ".join(str(n) for n in duplicates))
    if missing:
        problems.append("missing: " + ", ".join(str(n) for n in missing))
    raise ValidationError(
        f"Part {part_number} needs questions {spec.first_question}-{spec.last_question} "
        f"exactly once ({'; '.join(problems)})",
        details={"duplicates": duplicates, "missing": missing},
    )


def _require_answer(question_number: int, answer: Optional[str]) -> str:
    value = normalize_answer(answer)
    if value not in ("A", "B", "C", "D"):
        raise ValidationError(
            f"Question {question_number} has no correct answer",
            details={"question_number": question_number},
        )
    return value


def _raise_on_failures(result: BatchResult) -> BatchResult:
    if not result.ok:
        raise BatchOperationError(
            notify("questions.batch_failed", failed=result.failed, total=result.total),
            result=result,
        )
    return result


class QuestionBuilder:
    """Entry flows for every TOEIC part."""

    def __init__(
        self,
        questions: QuestionService,
        parts: PartService,
        media: MediaService,
        ai: Optional[AIExplanationService] = None,
        max_workers: Optional[int] = None,
    ):
        self.questions = questions
        self.parts = parts
        self.media = media
        self.ai = ai
        self.max_workers = max_workers

    # Part 1: Photographs

    @staticmethod
    def part1_payload(
        question_number: int,
        image_url: str,
        correct_answer: str,
        options: Optional[Dict[str, Optional[str]]] = None,
        explanation: Optional[str] = None,
    ) -> QuestionInput:
        options = options or {}
        return QuestionInput(
            question_number=question_number,
            image_url=image_url,
            audio_url=None,
            correct_answer=correct_answer,
            question_text=PART1_PROMPT,
            option_a=options.get("A") or "(A)",
            option_b=options.get("B") or "(B)",
            option_c=options.get("C") or "(C)",
            option_d=options.get("D") or "(D)",
            explanation=explanation,
        )

    def create_part1_question(
        self,
        part: Part,
        question_number: int,
        image: Optional[PathLike],
        correct_answer: str,
        options: Optional[Dict[str, Optional[str]]] = None,
    ) -> Optional[Question]:
        """Upload the photograph, then create the question."""
        _require_part(part, 1)
        validate_question_number(1, question_number)
        if not image:
            raise ValidationError(
                f"Question {question_number} needs an image",
                details={"question_number": question_number},
            )
        answer = _require_answer(question_number, correct_answer)

        image_url = self.media.upload_image(image)
        payload = self.part1_payload(question_number, image_url, answer, options)
        return self.questions.create_question(part.id, payload)

    def edit_part1_question(
        self,
        question: Question,
        question_number: int,
        correct_answer: str,
        image: Optional[PathLike] = None,
        options: Optional[Dict[str, Optional[str]]] = None,
    ) -> Optional[Question]:
        """Update a Part 1 question, keeping its current image unless a new one is given."""
        validate_question_number(1, question_number)
        answer = _require_answer(question_number, correct_answer)
        image_url = self.media.upload_image(image) if image else question.image_url

        options = options or {}
        values = {
            "questionNumber": question_number,
            "imageUrl": image_url,
            "optionA": options.get("A") or "(A)",
            "optionB": options.get("B") or "(B)",
            "optionC": options.get("C") or "(C)",
            "optionD": options.get("D") or "(D)",
            "correctAnswer": answer,
        }
        return self.questions.update_question(question.id, values)

    def create_part1_bulk(
        self, part: Part, drafts: Sequence[Part1Draft], audio: Optional[PathLike] = None
    ) -> BatchResult:
        """
        Create all six Part 1 questions.

        Every draft needs an image and an answer; the first offender is
        reported. A new part audio is uploaded and attached before any
        question is created.
        """
        _require_part(part, 1)
        drafts = sorted(drafts, key=lambda d: d.question_number)
        for draft in drafts:
            validate_question_number(1, draft.question_number)
        _require_full_range(1, [d.question_number for d in drafts])
        for draft in drafts:
            if not draft.image:
                raise ValidationError(
                    f"Question {draft.question_number} has no image",
                    details={"question_number": draft.question_number},
                )
            _require_answer(draft.question_number, draft.correct_answer)

        if audio:
            self.parts.set_part_audio(part.id, self.media.upload_audio(audio))

        def create(draft: Part1Draft):
            image_url = self.media.upload_image(draft.image)
            options = {"A": draft.option_a, "B": draft.option_b, "C": draft.option_c, "D": draft.option_d}
            payload = self.part1_payload(
                draft.question_number,
                image_url,
                normalize_answer(draft.correct_answer),
                options,
                draft.explanation,
            )
            return self.questions.create_question(part.id, payload)

        result = fan_out(drafts, create, max_workers=self.max_workers)
        logger.info("Part 1 bulk created", part_id=part.id, succeeded=result.succeeded)
        return _raise_on_failures(result)

    # Part 2: Question-Response

    def _part2_audio(self, part: Part, audio: Optional[PathLike]) -> Optional[str]:
        if audio:
            return self.media.upload_audio(audio)
        if not part.audio_url:
            raise ValidationError(
                "Upload an audio file or set the part's shared audio first",
                details={"part_id": part.id},
            )
        return part.audio_url

    @staticmethod
    def part2_payload(draft: Part2Draft) -> QuestionInput:
        return QuestionInput(
            question_number=draft.question_number,
            question_text=draft.question_text or PART2_PROMPT,
            option_a=draft.option_a or "(A)",
            option_b=draft.option_b or "(B)",
            option_c=draft.option_c or "(C)",
            option_d=None,
            correct_answer=normalize_answer(draft.correct_answer),
            explanation=draft.explanation,
        )

    def create_part2_question(
        self,
        part: Part,
        question_number: int,
        correct_answer: str,
        audio: Optional[PathLike] = None,
        explanation: Optional[str] = None,
    ) -> Optional[Question]:
        """Create one Part 2 question on its own audio, or on the part's audio."""
        _require_part(part, 2)
        validate_question_number(2, question_number)
        _require_answer(question_number, correct_answer)
        audio_url = self._part2_audio(part, audio)

        payload = self.part2_payload(
            Part2Draft(
                question_number=question_number,
                correct_answer=correct_answer,
                explanation=explanation,
            )
        )
        payload.audio_url = audio_url
        return self.questions.create_question(part.id, payload)

    def create_part2_bulk(
        self, part: Part, drafts: Sequence[Part2Draft], audio: Optional[PathLike] = None
    ) -> BatchResult:
        """Create all 25 Part 2 questions (7-31) on the part's shared audio."""
        _require_part(part, 2)
        drafts = sorted(drafts, key=lambda d: d.question_number)
        for draft in drafts:
            validate_question_number(2, draft.question_number)
        _require_full_range(2, [d.question_number for d in drafts])
        for draft in drafts:
            _require_answer(draft.question_number, draft.correct_answer)

        if audio:
            self.parts.set_part_audio(part.id, self.media.upload_audio(audio))
        elif not part.audio_url:
            raise ValidationError(
                "Part 2 needs a shared audio file", details={"part_id": part.id}
            )

        result = fan_out(
            drafts,
            lambda draft: self.questions.create_question(part.id, self.part2_payload(draft)),
            max_workers=self.max_workers,
        )
        logger.info("Part 2 bulk created", part_id=part.id, succeeded=result.succeeded)
        return _raise_on_failures(result)

    # Parts 3 and 4: Conversations and Talks

    def listening_group_numbers(self, part: Part, count: int = LISTENING_GROUP_SIZE) -> List[int]:
        """Question numbers pre-filled for the next conversation or talk."""
        start = self.questions.next_question_number(part.id, part.part_number)
        return list(range(start, start + count))

    def create_listening_group(
        self,
        part: Part,
        questions: Sequence[QuestionInput],
        audio: Optional[PathLike],
        explanation: Optional[str] = None,
        transcript: Optional[str] = None,
    ) -> int:
        """
        Create a Part 3/4 group sharing one audio clip.

        The shared explanation and transcript are copied onto every question.
        """
        _require_part(part, 3, 4)
        if not audio:
            raise ValidationError("Upload the conversation audio first", details={"part_id": part.id})
        if not questions:
            raise ValidationError("No questions to create")
        for question in questions:
            validate_question_number(part.part_number, question.question_number)

        audio_url = self.media.upload_audio(audio)
        shared = [
            q.model_copy(
                update={"explanation": explanation, "audio_url": audio_url, "transcript": transcript}
            )
            for q in questions
        ]
        return self.questions.create_batch(
            part.id,
            shared,
            passage=audio_placeholder(audio_url),
            audio_url=audio_url,
            transcript=transcript,
        )

    # Part 5: Incomplete Sentences

    def save_part5_bulk(
        self,
        part: Part,
        questions: Sequence[Question],
        mode: Union[ImportMode, str] = ImportMode.NEW,
        with_ai: bool = False,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """Save spreadsheet rows as Part 5 questions with one batch request."""
        _require_part(part, 5)
        if not questions:
            raise ValidationError("The spreadsheet has no questions")

        rows = [QuestionInput.model_validate(self._part5_row(q)) for q in questions]
        if with_ai and self.ai is not None:
            self.ai.generate_explanations(rows, progress=progress)

        return self.questions.create_batch(part.id, rows, mode=mode)

    @staticmethod
    def _part5_row(question: Question) -> Dict:
        validate_question_number(5, question.question_number)
        answer = _require_answer(question.question_number, question.correct_answer)
        return {
            "question_number": question.question_number,
            "question_text": question.question_text or "",
            "option_a": question.option_a or "",
            "option_b": question.option_b or "",
            "option_c": question.option_c or "",
            "option_d": question.option_d or "",
            "correct_answer": answer,
            "explanation": question.explanation,
        }

    # Part 6: Text Completion

    def create_part6_passages(self, part: Part, passages: Sequence[Part6Passage]) -> BatchResult:
        """
        Create Part 6 passages one after another.

        Each passage is its own batch request. A failed passage does not stop
        the rest; the result tells how many went through.
        """
        _require_part(part, 6)
        if not passages:
            raise ValidationError("Enter at least one passage")

        for item in passages:
            validate_question_number(6, item.start)
            validate_question_number(6, item.end)
            if item.start > item.end:
                raise ValidationError(f"Passage range {item.start}-{item.end} is reversed")
            if not item.passage or not item.passage.strip():
                raise ValidationError(f"Passage {item.start}-{item.end} has no text")
            for question in item.questions:
                if not item.start <= question.question_number <= item.end:
                    raise ValidationError(
                        f"Question {question.question_number} is outside its passage range "
                        f"{item.start}-{item.end}"
                    )

        results = []
        for item in passages:
            label = f"{item.start}-{item.end}"
            try:
                count = self.questions.create_batch(
                    part.id, item.questions, passage=combine_title(item.title, item.passage)
                )
                results.append(BatchItemResult(item=label, success=True, value=count))
            except ToeicAdminError as e:
                logger.warning("Part 6 passage failed", passage=label, error=e.message)
                results.append(
                    BatchItemResult(
                        item=label, success=False, error=e.message, error_type=type(e).__name__
                    )
                )

        result = BatchResult(results=results)
        logger.info("Part 6 passages created", succeeded=result.succeeded, total=result.total)
        return result

    # Part 7: Reading Comprehension

    def create_part7_group(
        self, part: Part, group: Part7Passage, existing_numbers: Sequence[int] = ()
    ) -> int:
        """
        Create a Part 7 passage with its questions.

        Raises:
            ValidationError: If the passage content does not match its type,
                a number is out of range or already taken
        """
        _require_part(part, 7)
        has_images = bool(group.images)
        has_text = bool(group.text and group.text.strip())
        if group.passage_type == "image" and not has_images:
            raise ValidationError("Upload at least one passage image")
        if group.passage_type == "text" and not has_text:
            raise ValidationError("Enter the passage text")
        if group.passage_type == "both" and not (has_images or has_text):
            raise ValidationError("Upload an image or enter the passage text")
        if not group.questions:
            raise ValidationError("No questions to create")

        numbers = [q.question_number for q in group.questions]
        for number in numbers:
            validate_question_number(7, number)
        duplicates, suggestion = self.questions.check_duplicate_range(
            existing_numbers, min(numbers), max(numbers)
        )
        if duplicates:
            raise ValidationError(
                notify(
                    "questions.duplicates",
                    numbers=", ".join(str(n) for n in duplicates),
                    suggestion=suggestion,
                ),
                details={"duplicates": duplicates, "suggestion": suggestion},
            )

        image_urls = [self.media.upload_image(path) for path in group.images]
        passage = compose_passage(group.title, image_urls, group.text)
        return self.questions.create_batch(part.id, group.questions, passage=passage)
