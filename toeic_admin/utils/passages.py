"""
Passage bookkeeping for grouped questions.

Parts 3, 4, 6 and 7 attach one passage (or audio placeholder) to several
consecutive questions. The backend stores the passage on every question, so
the console groups questions back together for display and pushes edits to
every member of a group.
"""

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from toeic_admin.core.catalog import PART6_GROUP_SIZE, get_part_spec
from toeic_admin.core.models import PassageGroup, Question

_TAG = re.compile(r"<[^>]*>?")
_WHITESPACE = re.compile(r"\s+")
_IMG_SRC = re.compile(r'<img[^>]+src="([^">]+)"')

IMAGE_STYLE = "max-width: 100%; display: block; margin-bottom: 10px;"


def normalize_passage(passage: Optional[str]) -> str:
    """
    Reduce a passage to what decides whether two questions share it.

    Passages with images are compared verbatim (the URLs tell groups apart);
    anything else is compared on its text, ignoring markup and spacing.
    """
    if not passage:
        return ""
    if "<img" in passage:
        return passage.strip()
    text_only = _TAG.sub(" ", passage)
    return _WHITESPACE.sub(" ", text_only).strip()


def sort_questions(questions: Iterable[Question]) -> List[Question]:
    return sorted(questions, key=lambda q: q.question_number)


def group_by_passage(questions: Iterable[Question], normalize: bool = True) -> List[PassageGroup]:
    """Split questions, ordered by number, into runs that share a passage."""
    key = normalize_passage if normalize else (lambda p: p or "")
    groups: List[PassageGroup] = []
    current: Optional[PassageGroup] = None

    for question in sort_questions(questions):
        passage = question.passage or ""
        if current is None or key(passage) != key(current.passage):
            current = PassageGroup(passage=passage)
            groups.append(current)
        current.questions.append(question)

    return groups


def passage_row_spans(questions: Sequence[Question]) -> List[int]:
    """
    Table row spans for a passage column.

    The first row of each run of identical passages spans the whole run;
    the other rows of the run get 0 (merged away). Input order is kept.
    """
    spans = [0] * len(questions)
    start = 0
    for index in range(1, len(questions) + 1):
        if index == len(questions) or questions[index].passage != questions[start].passage:
            spans[start] = index - start
            start = index
    return spans


def part6_group_range(question_number: int) -> Tuple[int, int]:
    """
    First and last question number of the Part 6 block holding ``question_number``.

    Blocks start at 131 for catalog numbering and at 1 for parts numbered
    from 1 (as in the import template).
    """
    first = get_part_spec(6).first_question
    if question_number < first:
        first = 1
    start = first + (question_number - first) // PART6_GROUP_SIZE * PART6_GROUP_SIZE
    return start, start + PART6_GROUP_SIZE - 1


def questions_in_group(questions: Iterable[Question], question_number: int) -> List[Question]:
    start, end = part6_group_range(question_number)
    return [q for q in sort_questions(questions) if start <= q.question_number <= end]


def extract_image_urls(passage: Optional[str]) -> List[str]:
    """Image URLs of a passage, in document order."""
    if not passage:
        return []
    return _IMG_SRC.findall(passage)


def image_tags(urls: Iterable[str]) -> str:
    return "".join(f'<img src="{url}" style="{IMAGE_STYLE}" />' for url in urls)


def compose_passage(
    title: Optional[str] = None, image_urls: Iterable[str] = (), text: Optional[str] = None
) -> str:
    """Build the HTML passage stored for a Part 7 group."""
    passage = ""
    if title and title.strip():
        passage += f"<p><b>{title.strip()}</b></p>"
    passage += image_tags(image_urls)
    if text:
        passage += text
    return passage


def combine_title(title: Optional[str], passage: str) -> str:
    """Prefix a Part 6 passage with a bold title line."""
    if title and title.strip():
        return f"**{title.strip()}**\n\n{passage}"
    return passage


def audio_placeholder(audio_url: str) -> str:
    """Passage stored on Part 3/4 questions so they group by their shared audio."""
    return f'<audio src="{audio_url}">'
