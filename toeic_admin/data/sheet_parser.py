"""
Spreadsheet import and template utilities.

Reads question sheets exported from Excel (or saved as CSV) and produces the
blank templates handed to content editors.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import structlog

from toeic_admin.core.catalog import get_part_spec, part_has_passages, template_question_numbers
from toeic_admin.core.exceptions import SheetParsingError, ValidationError
from toeic_admin.core.models import ANSWER_CHOICES, Question, normalize_answer

logger = structlog.get_logger(__name__)

NUMBER_HEADER = "Số câu"
TEXT_HEADER = "Nội dung câu hỏi"
OPTION_HEADERS = {letter: f"Đáp án {letter}" for letter in ANSWER_CHOICES}
ANSWER_HEADER = "Đáp án đúng (A/B/C/D)"
EXPLANATION_HEADER = "Giải thích"
PASSAGE_HEADER = "Đoạn văn (Part 6/7)"

# Accepted header spellings (lower-cased) for each question field
COLUMN_ALIASES: Dict[str, List[str]] = {
    "question_number": ["số câu", "question_number", "question number", "number", "no"],
    "question_text": ["nội dung câu hỏi", "question_text", "question text", "question"],
    "option_a": ["đáp án a", "a", "option_a", "option a"],
    "option_b": ["đáp án b", "b", "option_b", "option b"],
    "option_c": ["đáp án c", "c", "option_c", "option c"],
    "option_d": ["đáp án d", "d", "option_d", "option d"],
    "correct_answer": [
        "đáp án đúng (a/b/c/d)",
        "đáp án đúng",
        "correct_answer",
        "correct answer",
        "answer",
    ],
    "explanation": ["giải thích", "explanation"],
    "passage": ["đoạn văn (part 6/7)", "đoạn văn", "passage"],
}

SUPPORTED_SUFFIXES = (".xlsx", ".csv")


class SheetParser:
    """
    Turns question spreadsheets into ``Question`` rows.

    With ``strict_validation`` any malformed row aborts the import; otherwise
    the row is skipped with a warning.
    """

    def __init__(self, strict_validation: bool = True):
        self.strict_validation = strict_validation

    def read_frame(self, path: Union[str, Path]) -> pd.DataFrame:
        """Load the first sheet of a workbook (or a CSV file) as text."""
        path = Path(path).expanduser()
        if not path.is_file():
            raise SheetParsingError(f"File not found: {path}", details={"path": str(path)})
        suffix = path.suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise SheetParsingError(
                f"Unsupported file type '{suffix}' (expected .xlsx or .csv)",
                details={"path": str(path)},
            )

        try:
            if suffix == ".csv":
                df = pd.read_csv(path, dtype=str, keep_default_na=False)
            else:
                df = pd.read_excel(path, sheet_name=0, dtype=str, keep_default_na=False)
        except (ValueError, OSError, ImportError) as e:
            raise SheetParsingError(f"Could not read {path.name}: {e}", details={"path": str(path)})

        logger.debug("Sheet loaded", path=str(path), rows=len(df), columns=list(df.columns))
        return df

    def resolve_columns(self, df: pd.DataFrame) -> Dict[str, str]:
        """
        Map question fields to the sheet's actual column names.

        Raises:
            SheetParsingError: If no question-number column exists
        """
        column_mapping = {str(c).lower().strip(): c for c in df.columns}
        resolved: Dict[str, str] = {}
        for field, aliases in COLUMN_ALIASES.items():
            for alias in aliases:
                if alias in column_mapping:
                    resolved[field] = column_mapping[alias]
                    break

        if "question_number" not in resolved:
            raise SheetParsingError(
                f"Missing required column '{NUMBER_HEADER}'",
                details={"available_columns": [str(c) for c in df.columns]},
            )
        return resolved

    @staticmethod
    def safe_string_conversion(value: Any) -> Optional[str]:
        """Convert a cell to a stripped string, treating blanks and NaN as None."""
        if value is None:
            return None
        if isinstance(value, float) and pd.isna(value):
            return None
        text = str(value).strip()
        if text.lower() in ("nan", "none", ""):
            return None
        return text

    def parse_number(self, value: Any) -> int:
        text = self.safe_string_conversion(value)
        if text is None:
            raise ValidationError("question number is empty")
        try:
            return int(float(text))
        except ValueError:
            raise ValidationError(f"question number '{text}' is not a number")

    def parse_frame(self, df: pd.DataFrame) -> List[Question]:
        """Convert sheet rows into questions ordered as they appear."""
        columns = self.resolve_columns(df)
        questions: List[Question] = []
        skipped = 0

        for index, row in df.iterrows():
            values = {field: self.safe_string_conversion(row[col]) for field, col in columns.items()}
            if not any(values.values()):
                continue  # blank line

            line = int(index) + 2  # header is line 1
            try:
                values["question_number"] = self.parse_number(values["question_number"])
                answer = normalize_answer(values.get("correct_answer"))
                if answer is not None and answer not in ANSWER_CHOICES:
                    raise ValidationError(f"correct answer '{answer}' is not one of A, B, C, D")
                values["correct_answer"] = answer
                questions.append(Question(**values))
            except ValidationError as e:
                if self.strict_validation:
                    raise SheetParsingError(
                        f"Row {line}: {e.message}", details={"row": line, **e.details}
                    )
                skipped += 1
                logger.warning("Skipping invalid row", row=line, error=e.message)

        logger.info("Sheet parsed", questions=len(questions), skipped=skipped)
        return questions

    def parse_file(self, path: Union[str, Path]) -> List[Question]:
        return self.parse_frame(self.read_frame(path))


def build_template(part_number: int) -> pd.DataFrame:
    """Blank import template with the question numbers pre-filled."""
    get_part_spec(part_number)
    columns = [NUMBER_HEADER, TEXT_HEADER, *OPTION_HEADERS.values(), ANSWER_HEADER, EXPLANATION_HEADER]
    if part_has_passages(part_number):
        columns.append(PASSAGE_HEADER)

    rows = []
    for number in template_question_numbers(part_number):
        row = {column: "" for column in columns}
        row[NUMBER_HEADER] = number
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def template_filename(part_number: int) -> str:
    return f"Template_Part_{part_number}.xlsx"


def write_template(part_number: int, directory: Union[str, Path] = ".") -> Path:
    """Write ``Template_Part_N.xlsx`` into ``directory`` and return its path."""
    directory = Path(directory).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / template_filename(part_number)
    build_template(part_number).to_excel(
        path, sheet_name=f"Part {part_number}", index=False, engine="openpyxl"
    )
    logger.info("Template written", part_number=part_number, path=str(path))
    return path
