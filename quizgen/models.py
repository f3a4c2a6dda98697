"""Data models for quiz question generation.

These pydantic models describe the inputs and outputs of the generation
pipeline, the rate limiter's state, and the status events reported to
callers while a generation is in flight.
"""

import enum
import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_CATEGORY = "General Knowledge"
RANDOM_CATEGORY = "random"


class DifficultyLevel(str, enum.Enum):
    """Difficulty levels for generated questions."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def generate_question_id() -> str:
    """Create a locally unique question identifier.

    Returns:
        Identifier of the form ``q_<32 hex chars>``
    """
    return f"q_{uuid.uuid4().hex}"


class SessionQuestion(BaseModel):
    """Minimal record of a question already asked in this session."""

    model_config = ConfigDict(frozen=True)

    question_text: str
    answer_text: str = ""


class GenerationParameters(BaseModel):
    """Parameters for a single question generation call.

    Attributes:
        difficulty: Requested difficulty level
        language: Language for the question and answer (e.g. "English")
        category: Topic to focus on, or "random" for any widely-known topic
        previous_questions: Questions to avoid repeating
    """

    model_config = ConfigDict(frozen=True)

    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM
    language: str = "English"
    category: str = RANDOM_CATEGORY
    previous_questions: List[SessionQuestion] = Field(default_factory=list)

    @field_validator("category", "language", mode="before")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        """Strip surrounding whitespace from free-text fields."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("category")
    @classmethod
    def default_category(cls, v: Optional[str]) -> str:
        """Treat a missing category as a request for a random topic."""
        return v or RANDOM_CATEGORY

    @field_validator("language")
    @classmethod
    def default_language(cls, v: Optional[str]) -> str:
        """Fall back to English when no language is given."""
        return v or "English"

    @property
    def is_random_category(self) -> bool:
        """Whether the caller left the topic up to the model."""
        return self.category.lower() == RANDOM_CATEGORY


class GeneratedQuestion(BaseModel):
    """A fully validated question returned by the pipeline.

    When ``options`` is present, ``correct_option_index`` is the authoritative
    marker of the correct option; the option at that index always equals
    ``answer_text``.
    """

    id: str = Field(default_factory=generate_question_id)
    question_text: str = Field(..., min_length=1)
    answer_text: str = Field(..., min_length=1)
    category: str = DEFAULT_CATEGORY
    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM
    options: Optional[List[str]] = None
    correct_option_index: Optional[int] = None
    is_fallback: bool = False

    @field_validator("question_text", "answer_text")
    @classmethod
    def validate_non_empty_text(cls, v: str) -> str:
        """Reject text that is empty once whitespace is removed."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be empty or whitespace-only")
        return stripped

    @model_validator(mode="after")
    def validate_options(self) -> "GeneratedQuestion":
        """Check that the correct option index points at the answer."""
        if self.options is None:
            if self.correct_option_index is not None:
                raise ValueError("correct_option_index requires options")
            return self

        if len(self.options) < 2:
            raise ValueError("options must contain at least 2 entries")
        if self.correct_option_index is None:
            raise ValueError("options require correct_option_index")
        if not 0 <= self.correct_option_index < len(self.options):
            raise ValueError("correct_option_index is out of range")
        if self.options[self.correct_option_index] != self.answer_text:
            raise ValueError("correct_option_index must point at answer_text")
        return self

    def to_session_question(self) -> SessionQuestion:
        """Reduce this question to its duplicate-tracking record."""
        return SessionQuestion(
            question_text=self.question_text, answer_text=self.answer_text
        )


class RateLimitState(BaseModel):
    """Mutable rate limit counters for one limiter instance."""

    window_start_timestamp: Optional[float] = None
    requests_in_window: int = 0
    last_request_timestamp: Optional[float] = None


class RateLimitStatus(BaseModel):
    """Result of checking whether the next request would be rate limited."""

    limited: bool
    wait_seconds: Optional[int] = None
    message: Optional[str] = None
    requests_remaining: int
    seconds_until_window_reset: int
    near_limit: bool


class QuotaStatus(BaseModel):
    """Quota summary for display next to the generate button."""

    requests_remaining: int
    seconds_until_reset: int
    near_limit: bool


class StatusUpdate(BaseModel):
    """A human-readable progress message emitted during generation."""

    message: str
    is_waiting: bool = False
    seconds_remaining: Optional[int] = None
