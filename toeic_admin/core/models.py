"""
Data models and type definitions for the TOEIC admin console.

Records mirror what the REST backend returns (camelCase on the wire,
snake_case in Python). Input models carry the client-side form guardrails.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    """Account roles known to the backend."""

    STUDENT = "STUDENT"
    STAFF = "STAFF"
    ADMIN = "ADMIN"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class TestType(str, Enum):
    """Section a test belongs to."""

    __test__ = False  # not a pytest class

    LISTENING = "LISTENING"
    READING = "READING"


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class TestStatus(str, Enum):
    """Whether students can open a test."""

    __test__ = False

    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"


class PartStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ImportMode(str, Enum):
    """How imported questions combine with the ones already in a part."""

    NEW = "new"
    APPEND = "append"
    REPLACE = "replace"


ANSWER_CHOICES = ("A", "B", "C", "D")


def normalize_answer(value: Any) -> Optional[str]:
    """Upper-case a correct-answer letter, returning None for blanks."""
    if value is None:
        return None
    text = str(value).strip().upper()
    return text or None


# Base Models


class ApiModel(BaseModel):
    """Base class for records exchanged with the backend."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    def to_payload(self, exclude: Optional[set] = None) -> Dict[str, Any]:
        """Serialize the fields that were set, using backend (camelCase) names."""
        return self.model_dump(by_alias=True, exclude_unset=True, exclude=exclude, mode="json")


# Accounts


class User(ApiModel):
    """Backend user account."""

    id: str
    email: str
    name: str = ""
    role: Role = Role.STUDENT
    phone_number: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[Gender] = None
    avatar_url: Optional[str] = None
    progress: Optional[float] = None
    target_score: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


class UserInput(ApiModel):
    """Fields accepted when creating or editing a user."""

    email: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None
    role: Optional[Role] = None
    phone_number: Optional[str] = None
    gender: Optional[Gender] = None
    avatar_url: Optional[str] = None
    progress: Optional[float] = Field(default=None, ge=0, le=100)
    target_score: Optional[int] = Field(default=None, ge=0, le=990)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v is not None and "@" not in v:
            raise ValueError("invalid email address")
        return v


# Test bank


class Test(ApiModel):
    """A TOEIC exam ("test") in the bank."""

    __test__ = False

    id: str
    title: str
    test_type: TestType = TestType.LISTENING
    difficulty: Difficulty = Difficulty.MEDIUM
    status: TestStatus = TestStatus.LOCKED
    duration: Optional[int] = None  # minutes
    total_questions: Optional[int] = None
    listening_questions: Optional[int] = None
    reading_questions: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TestInput(ApiModel):
    """Fields accepted when creating or editing a test."""

    __test__ = False

    title: Optional[str] = Field(default=None, min_length=1)
    test_type: Optional[TestType] = None
    difficulty: Optional[Difficulty] = None
    status: Optional[TestStatus] = None
    duration: Optional[int] = Field(default=None, ge=1)
    total_questions: Optional[int] = Field(default=None, ge=1)


class Part(ApiModel):
    """A Listening/Reading section of a test."""

    id: str
    test_id: Optional[str] = None
    part_number: int
    part_name: str = ""
    total_questions: int = 0
    instructions: Optional[str] = None
    status: PartStatus = PartStatus.INACTIVE
    order_index: Optional[int] = None
    completed_questions: int = 0
    time_limit: Optional[int] = None  # minutes
    audio_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def progress_percent(self) -> int:
        """Share of the expected questions already entered."""
        if not self.total_questions:
            return 0
        return round(self.completed_questions / self.total_questions * 100)

    @property
    def is_complete(self) -> bool:
        return self.completed_questions == self.total_questions


class PartInput(ApiModel):
    """Fields accepted when creating or editing a part."""

    part_number: Optional[int] = Field(default=None, ge=1, le=7)
    part_name: Optional[str] = None
    total_questions: Optional[int] = Field(default=None, ge=1)
    time_limit: Optional[int] = Field(default=None, ge=1)
    order_index: Optional[int] = None
    status: Optional[PartStatus] = None
    instructions: Optional[str] = None
    audio_url: Optional[str] = None


class Question(ApiModel):
    """A question record as stored by the backend."""

    id: Optional[str] = None
    part_id: Optional[str] = None
    question_number: int
    question_text: Optional[str] = None
    option_a: Optional[str] = None
    option_b: Optional[str] = None
    option_c: Optional[str] = None
    option_d: Optional[str] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    passage: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    transcript: Optional[str] = None
    related_passage: Optional[str] = None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def upper_answer(cls, v):
        return normalize_answer(v)

    @property
    def options(self) -> Dict[str, Optional[str]]:
        return {"A": self.option_a, "B": self.option_b, "C": self.option_c, "D": self.option_d}


class QuestionInput(Question):
    """A question about to be sent to the backend; the answer letter is mandatory."""

    correct_answer: str

    @field_validator("correct_answer")
    @classmethod
    def validate_answer(cls, v):
        if v not in ANSWER_CHOICES:
            raise ValueError("correct answer must be one of A, B, C, D")
        return v

    def to_payload(self, exclude: Optional[set] = None) -> Dict[str, Any]:
        return super().to_payload(exclude=(exclude or set()) | {"id", "part_id"})


# Listing helpers

T = TypeVar("T")


class Pagination(ApiModel):
    page: int = 1
    limit: int = 10
    total: int = 0
    total_pages: Optional[int] = None


class Page(BaseModel, Generic[T]):
    """One page of a paginated listing."""

    items: List[T] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class TestStats(BaseModel):
    """Counters shown above the exam list."""

    __test__ = False

    total: int = Field(default=0, ge=0)
    locked: int = Field(default=0, ge=0)
    unlocked: int = Field(default=0, ge=0)


class DashboardStats(BaseModel):
    """Overview counters."""

    users: int = Field(default=0, ge=0)
    tests: int = Field(default=0, ge=0)
    locked_tests: int = Field(default=0, ge=0)
    unlocked_tests: int = Field(default=0, ge=0)
    questions: Optional[int] = None


class PassageGroup(BaseModel):
    """Consecutive questions that share one passage."""

    passage: str = ""
    questions: List[Question] = Field(default_factory=list)

    @property
    def question_numbers(self) -> List[int]:
        return [q.question_number for q in self.questions]


# Batch results


class BatchItemResult(BaseModel):
    """Outcome of one request in a fan-out batch."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    item: Any = None
    success: bool = True
    value: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class BatchResult(BaseModel):
    """Outcome of a fan-out batch, in input order."""

    results: List[BatchItemResult] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def errors(self) -> List[str]:
        return [r.error for r in self.results if not r.success and r.error]

    def values(self) -> List[Any]:
        return [r.value for r in self.results if r.success]


class UploadResult(ApiModel):
    """Where the backend stored an uploaded file."""

    url: str
    public_id: Optional[str] = None


class ImportResult(BaseModel):
    """Outcome of a spreadsheet import or batch save."""

    count: int = Field(default=0, ge=0)
    mode: Optional[str] = None


# Local session


class Session(BaseModel):
    """What the console keeps on disk between commands."""

    token: str
    user: User
    last_activity: datetime = Field(default_factory=datetime.utcnow)
