"""Quiz editor integration.

Wraps the question generator for the quiz creation workflow: maps quiz
categories onto prompt topics, turns generated questions into quiz
questions (single answer or multiple choice) and reports failures in a
result envelope instead of raising.
"""

import enum
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from .generation.generator import QuestionGenerator
from .infrastructure.error_classifier import GenerationError
from .models import (
    DifficultyLevel,
    GeneratedQuestion,
    GenerationParameters,
    QuotaStatus,
    SessionQuestion,
    StatusUpdate,
)
from .utils.type_mapping import map_quiz_category

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = (
    "AI service is not available. Please check your connection and try again."
)
DEFAULT_TIME_LIMIT_SECONDS = 60
DEFAULT_POINTS = 1


class QuestionFormat(str, enum.Enum):
    """Answer formats supported by the quiz editor."""

    SINGLE_ANSWER = "single-answer"
    MULTIPLE_CHOICE = "multiple-choice"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuizQuestion(BaseModel):
    """A question as stored by the quiz editor.

    For single-answer questions ``options`` is empty, ``correct_answer`` is
    -1 and the answer lives in ``text_answer``.
    """

    id: str
    type: QuestionFormat
    question: str
    options: List[str] = Field(default_factory=list)
    correct_answer: int = -1
    text_answer: str = ""
    explanation: str = ""
    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM
    points: float = DEFAULT_POINTS
    time_limit: int = DEFAULT_TIME_LIMIT_SECONDS
    is_fallback: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def answer(self) -> str:
        """The correct answer regardless of format."""
        if self.type == QuestionFormat.MULTIPLE_CHOICE and 0 <= self.correct_answer < len(
            self.options
        ):
            return self.options[self.correct_answer]
        return self.text_answer

    def to_session_question(self) -> SessionQuestion:
        return SessionQuestion(question_text=self.question, answer_text=self.answer)


class QuizQuestionRequest(BaseModel):
    """Parameters for generating one quiz question."""

    format: QuestionFormat = QuestionFormat.SINGLE_ANSWER
    category: str = "general"
    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM
    language: str = "English"
    options_count: int = Field(4, ge=2, le=20)
    previous_questions: List[QuizQuestion] = Field(default_factory=list)
    topic_hint: Optional[str] = None


class QuizQuestionResult(BaseModel):
    """Outcome of a quiz question request."""

    question: Optional[QuizQuestion] = None
    success: bool
    error: Optional[str] = None


def to_quiz_question(
    generated: GeneratedQuestion,
    question_format: QuestionFormat,
    difficulty: DifficultyLevel,
) -> QuizQuestion:
    """Convert a generated question into the quiz editor's shape.

    Args:
        generated: Pipeline output (with options for multiple choice)
        question_format: Target answer format
        difficulty: Difficulty the quiz author asked for

    Returns:
        QuizQuestion with editor defaults for points and time limit
    """
    base = dict(
        id=generated.id,
        question=generated.question_text,
        difficulty=difficulty,
        explanation=f"The correct answer is: {generated.answer_text}",
        is_fallback=generated.is_fallback,
    )

    if question_format == QuestionFormat.MULTIPLE_CHOICE:
        if generated.options is None or generated.correct_option_index is None:
            raise ValueError("multiple-choice conversion requires options")
        return QuizQuestion(
            type=QuestionFormat.MULTIPLE_CHOICE,
            options=list(generated.options),
            correct_answer=generated.correct_option_index,
            **base,
        )

    return QuizQuestion(
        type=QuestionFormat.SINGLE_ANSWER,
        text_answer=generated.answer_text,
        **base,
    )


class QuizQuestionService:
    """Generates quiz questions for the quiz creation workflow."""

    def __init__(self, generator: Optional[QuestionGenerator] = None):
        self.generator = generator or QuestionGenerator()

    def is_available(self) -> bool:
        """Whether AI generation can currently be used."""
        return self.generator.is_available()

    def get_rate_limit(self) -> QuotaStatus:
        """Current quota summary for display."""
        return self.generator.get_quota_status()

    async def generate_quiz_question(
        self,
        request: Optional[QuizQuestionRequest] = None,
        on_status_update: Optional[Callable[[StatusUpdate], None]] = None,
    ) -> QuizQuestionResult:
        """
        Generate one quiz question. Never raises for generation failures.

        Args:
            request: What to generate (single-answer, general, medium if None)
            on_status_update: Optional callback for progress messages

        Returns:
            QuizQuestionResult with either the question or an error message
        """
        request = request or QuizQuestionRequest()

        if not self.is_available():
            logger.info("Quiz question requested while AI service is unavailable")
            return QuizQuestionResult(success=False, error=UNAVAILABLE_MESSAGE)

        topic = (request.topic_hint or "").strip() or map_quiz_category(request.category)
        params = GenerationParameters(
            difficulty=request.difficulty,
            language=request.language,
            category=topic,
            previous_questions=[q.to_session_question() for q in request.previous_questions],
        )
        multiple_choice = request.format == QuestionFormat.MULTIPLE_CHOICE

        try:
            generated = await self.generator.generate_question(
                params,
                on_status_update=on_status_update,
                multiple_choice=multiple_choice,
                options_count=request.options_count,
            )
        except GenerationError as e:
            logger.warning(
                f"Quiz question generation failed: {e.category.value}",
                extra={"provider": e.classified_error.provider},
            )
            return QuizQuestionResult(success=False, error=e.message)

        return QuizQuestionResult(
            question=to_quiz_question(generated, request.format, request.difficulty),
            success=True,
        )
