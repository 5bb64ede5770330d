"""
TOEIC part catalog.

Static facts about the seven TOEIC parts used to pre-fill forms and to guard
question numbering before anything is sent to the backend.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Tuple

from toeic_admin.core.exceptions import ValidationError


@dataclass(frozen=True)
class PartSpec:
    """Form defaults and numbering guardrails for one TOEIC part."""

    number: int
    title: str
    total_questions: int
    time_limit: int  # minutes
    first_question: int
    last_question: int
    section: str
    option_count: int = 4

    @property
    def name(self) -> str:
        return f"Part {self.number}: {self.title}"

    @property
    def question_range(self) -> Tuple[int, int]:
        return self.first_question, self.last_question


PART_CONFIG: Dict[int, PartSpec] = {
    1: PartSpec(1, "Photographs", 6, 5, 1, 6, "LISTENING"),
    2: PartSpec(2, "Question-Response", 25, 8, 7, 31, "LISTENING", option_count=3),
    3: PartSpec(3, "Conversations", 39, 17, 32, 70, "LISTENING"),
    4: PartSpec(4, "Talks", 30, 15, 71, 100, "LISTENING"),
    5: PartSpec(5, "Incomplete Sentences", 30, 10, 101, 130, "READING"),
    6: PartSpec(6, "Text Completion", 16, 8, 131, 146, "READING"),
    7: PartSpec(7, "Reading Comprehension", 54, 54, 147, 200, "READING"),
}

PART6_GROUP_SIZE = 4
LISTENING_GROUP_SIZE = 3

PART1_PROMPT = "Look at the picture and listen to the four statements."
PART2_PROMPT = "Listen to the question and mark your answer."

_PART_PREFIX = re.compile(r"^Part \d+: ")


def get_part_spec(part_number: int) -> PartSpec:
    """Return the catalog entry for a part number (1-7)."""
    try:
        return PART_CONFIG[int(part_number)]
    except (KeyError, TypeError, ValueError):
        raise ValidationError(
            f"Unknown TOEIC part: {part_number}", details={"part_number": part_number}
        )


def validate_question_number(part_number: int, question_number: int) -> int:
    """Raise ValidationError when a question number falls outside its part's range."""
    spec = get_part_spec(part_number)
    low, high = spec.question_range
    if question_number is None or not low <= int(question_number) <= high:
        raise ValidationError(
            f"Part {spec.number} questions must be numbered {low}-{high}",
            details={"part_number": spec.number, "question_number": question_number},
        )
    return int(question_number)


def default_first_question(part_number: int) -> int:
    """Number suggested for the first question of an empty part."""
    if part_number in (3, 4):
        return PART_CONFIG[part_number].first_question
    return 1


def display_part_name(part_name: str) -> str:
    """Strip the leading "Part N: " from a stored part name."""
    return _PART_PREFIX.sub("", part_name or "")


def template_question_numbers(part_number: int) -> range:
    """Question numbers pre-filled in an import template."""
    if part_number == 5:
        return range(101, 131)
    count = 16 if part_number == 6 else 10
    return range(1, count + 1)


def part_has_passages(part_number: int) -> bool:
    return part_number in (6, 7)
