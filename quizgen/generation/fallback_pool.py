"""Known-good fallback questions.

When a response cannot be turned into a valid question, the parser returns
one of these records instead. The built-in pool can be extended from a
YAML file:

    version: "1.0"
    questions:
      - question: "What is the chemical symbol for gold?"
        answer: "Au"
        category: "Science"
        difficulty: "easy"
"""

import logging
import random
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from ..models import DifficultyLevel, GeneratedQuestion

logger = logging.getLogger(__name__)


class FallbackQuestion(BaseModel):
    """A single hand-checked question/answer pair."""

    question: str = Field(..., min_length=10)
    answer: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    difficulty: DifficultyLevel = DifficultyLevel.EASY

    def to_generated_question(self) -> GeneratedQuestion:
        """Materialize the pair as a fresh record with a new id."""
        return GeneratedQuestion(
            question_text=self.question,
            answer_text=self.answer,
            category=self.category,
            difficulty=self.difficulty,
            is_fallback=True,
        )


DEFAULT_FALLBACK_QUESTIONS: List[FallbackQuestion] = [
    FallbackQuestion(
        question="What is the capital of France?",
        answer="Paris",
        category="Geography",
    ),
    FallbackQuestion(
        question="Who wrote the play 'Romeo and Juliet'?",
        answer="William Shakespeare",
        category="Literature",
    ),
    FallbackQuestion(
        question="What is the largest planet in our solar system?",
        answer="Jupiter",
        category="Science",
    ),
]


class FallbackPoolConfig(BaseModel):
    """Contents of a fallback pool YAML file."""

    version: str = "1.0"
    questions: List[FallbackQuestion]

    @field_validator("questions")
    @classmethod
    def validate_questions(cls, v: List[FallbackQuestion]) -> List[FallbackQuestion]:
        """Require at least one question."""
        if not v:
            raise ValueError("Fallback pool must contain at least one question")
        return v


class FallbackPoolLoader:
    """Loader for fallback pool files."""

    def __init__(self, config_path: str | Path):
        """Initialize the loader.

        Args:
            config_path: Path to the YAML file
        """
        self.config_path = Path(config_path)

    def load(self) -> FallbackPoolConfig:
        """Load and validate the pool file.

        Returns:
            Parsed pool configuration

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the contents are invalid
            yaml.YAMLError: If YAML parsing fails
        """
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Fallback pool file not found: {self.config_path}"
            )

        logger.info(f"Loading fallback questions from {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse fallback pool YAML: {e}")
            raise

        if not isinstance(raw_config, dict):
            raise ValueError("Fallback pool file must contain a mapping")

        config = FallbackPoolConfig(**raw_config)
        logger.info(
            f"Loaded {len(config.questions)} fallback questions "
            f"(version {config.version})"
        )
        return config


class FallbackPool:
    """Pseudo-random selection over the fallback questions."""

    def __init__(
        self,
        questions: Optional[List[FallbackQuestion]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.questions = list(
            DEFAULT_FALLBACK_QUESTIONS if questions is None else questions
        )
        if not self.questions:
            raise ValueError("Fallback pool must contain at least one question")
        self._rng = rng or random.Random()

    @classmethod
    def from_file(
        cls,
        config_path: str | Path,
        include_defaults: bool = True,
        rng: Optional[random.Random] = None,
    ) -> "FallbackPool":
        """Build a pool from a YAML file.

        Args:
            config_path: Path to the YAML file
            include_defaults: Keep the built-in questions alongside the file's
            rng: Random source

        Returns:
            FallbackPool instance
        """
        config = FallbackPoolLoader(config_path).load()
        questions = list(config.questions)
        if include_defaults:
            questions = DEFAULT_FALLBACK_QUESTIONS + questions
        return cls(questions, rng=rng)

    def pick(self) -> GeneratedQuestion:
        """Pick one fallback question, tagged with a fresh id."""
        return self._rng.choice(self.questions).to_generated_question()
