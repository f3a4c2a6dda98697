"""Parsing of free-form model output into validated questions.

The model is asked for a bare JSON object but does not always comply: it
may wrap the object in prose or markdown fences, or return something else
entirely. Extraction is an ordered chain of fallible strategies; each one
returns either an ``ExtractionSuccess`` or an ``ExtractionFailure`` with a
reason, and the first success wins.

Parsing is total. When nothing usable comes back, a known-good record from
the fallback pool is returned instead, so callers never see a broken
question. The price is an occasional generic or repeated fact.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..models import DEFAULT_CATEGORY, GeneratedQuestion
from ..utils.text_utils import find_balanced_braces, strip_markdown_code_blocks
from ..utils.type_mapping import is_known_difficulty, normalize_difficulty
from .fallback_pool import FallbackPool

logger = logging.getLogger(__name__)

MIN_QUESTION_LENGTH = 10
MAX_QUESTION_LENGTH = 500
MAX_ANSWER_LENGTH = 200

# Looser match: a brace pair with no nested braces mentioning "question"
_QUESTION_OBJECT_PATTERN = re.compile(r"\{[^{}]*\"question\"[^{}]*\}", re.DOTALL)


@dataclass(frozen=True)
class ExtractionSuccess:
    """A candidate record found by a strategy."""

    strategy: str
    data: Dict[str, Any]


@dataclass(frozen=True)
class ExtractionFailure:
    """Why a strategy (or the whole chain) found nothing."""

    strategy: str
    reason: str


ExtractionResult = Union[ExtractionSuccess, ExtractionFailure]
ExtractionStrategy = Callable[[str], ExtractionResult]


@dataclass
class ValidationResult:
    """Outcome of validating a candidate record.

    Errors reject the record; warnings are logged only.
    """

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _interpret(candidate: str, strategy: str) -> ExtractionResult:
    """Decode ``candidate`` as JSON and check it looks like a question."""
    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError) as e:
        return ExtractionFailure(strategy, f"invalid JSON: {e}")

    if not isinstance(parsed, dict):
        return ExtractionFailure(strategy, f"expected an object, got {type(parsed).__name__}")
    if not isinstance(parsed.get("question"), str) or not isinstance(
        parsed.get("answer"), str
    ):
        return ExtractionFailure(strategy, "missing string 'question' or 'answer'")
    return ExtractionSuccess(strategy, parsed)


def parse_whole_text(text: str) -> ExtractionResult:
    """Strategy 1: the entire response is the record."""
    return _interpret(strip_markdown_code_blocks(text), "whole_text")


def parse_balanced_braces(text: str) -> ExtractionResult:
    """Strategy 2: the first balanced ``{...}`` inside the response."""
    candidate = find_balanced_braces(text)
    if candidate is None:
        return ExtractionFailure("balanced_braces", "no balanced braces found")
    return _interpret(candidate, "balanced_braces")


def parse_question_pattern(text: str) -> ExtractionResult:
    """Strategy 3: any flat object that mentions a "question" field."""
    match = _QUESTION_OBJECT_PATTERN.search(text)
    if match is None:
        return ExtractionFailure("question_pattern", "no object with a question field")
    return _interpret(match.group(0), "question_pattern")


EXTRACTION_STRATEGIES: Tuple[ExtractionStrategy, ...] = (
    parse_whole_text,
    parse_balanced_braces,
    parse_question_pattern,
)


def extract_question_data(
    text: str,
    strategies: Tuple[ExtractionStrategy, ...] = EXTRACTION_STRATEGIES,
) -> ExtractionResult:
    """Run the strategy chain over ``text``.

    Args:
        text: Raw model output
        strategies: Strategies to try, in order

    Returns:
        The first ExtractionSuccess, or an ExtractionFailure summarizing
        every strategy's reason
    """
    cleaned = text.strip()
    if not cleaned:
        return ExtractionFailure("input", "empty response text")

    reasons = []
    for strategy in strategies:
        result = strategy(cleaned)
        if isinstance(result, ExtractionSuccess):
            return result
        reasons.append(f"{result.strategy}: {result.reason}")

    return ExtractionFailure("chain", "; ".join(reasons))


def validate_question_data(data: Dict[str, Any]) -> ValidationResult:
    """Validate an extracted record.

    Args:
        data: Candidate with at least string ``question`` and ``answer``

    Returns:
        ValidationResult with errors and warnings
    """
    result = ValidationResult()
    question = data.get("question")
    answer = data.get("answer")
    category = data.get("category")
    difficulty = data.get("difficulty")

    question = question.strip() if isinstance(question, str) else ""
    answer = answer.strip() if isinstance(answer, str) else ""

    if len(question) < MIN_QUESTION_LENGTH:
        result.errors.append("Question text is missing or too short")
    if not answer:
        result.errors.append("Answer text is missing")

    if len(question) > MAX_QUESTION_LENGTH:
        result.warnings.append("Question is unusually long")
    if len(answer) > MAX_ANSWER_LENGTH:
        result.warnings.append("Answer is unusually long")
    if not isinstance(category, str) or not category.strip():
        result.warnings.append("Category is missing, will use default")
    if not is_known_difficulty(difficulty):
        result.warnings.append("Invalid difficulty, will use default")
    if question and not question.endswith("?"):
        result.warnings.append("Question does not end with a question mark")

    return result


class ResponseParser:
    """Turns raw model output into a GeneratedQuestion."""

    def __init__(self, fallback_pool: Optional[FallbackPool] = None):
        """
        Initialize the parser.

        Args:
            fallback_pool: Source of known-good records (built-in pool if None)
        """
        self.fallback_pool = fallback_pool or FallbackPool()

    def parse(self, raw_text: Any) -> GeneratedQuestion:
        """
        Parse model output. Never raises.

        Args:
            raw_text: Text returned by the provider

        Returns:
            A validated question, or a fallback record
        """
        text = self._coerce_text(raw_text)
        extraction = extract_question_data(text)

        if isinstance(extraction, ExtractionFailure):
            logger.warning(
                f"Could not extract a question ({extraction.reason}); "
                f"response starts with: {text[:200]!r}"
            )
            return self.fallback()

        validation = validate_question_data(extraction.data)
        if not validation.is_valid:
            logger.warning(f"Question data validation failed: {validation.errors}")
            return self.fallback()

        if validation.warnings:
            logger.info(f"Question data warnings: {validation.warnings}")

        try:
            question = self._build_question(extraction.data)
        except ValidationError as e:
            logger.warning(f"Extracted question rejected by model validation: {e}")
            return self.fallback()

        logger.debug(f"Parsed question via {extraction.strategy} strategy")
        return question

    def fallback(self) -> GeneratedQuestion:
        """Return a fallback record with a fresh id."""
        question = self.fallback_pool.pick()
        logger.info(f"Using fallback question {question.id}")
        return question

    @staticmethod
    def _coerce_text(raw_text: Any) -> str:
        if isinstance(raw_text, str):
            return raw_text
        if isinstance(raw_text, (bytes, bytearray)):
            return bytes(raw_text).decode("utf-8", errors="replace")
        return ""

    @staticmethod
    def _build_question(data: Dict[str, Any]) -> GeneratedQuestion:
        category = data.get("category")
        if not isinstance(category, str) or not category.strip():
            category = DEFAULT_CATEGORY

        return GeneratedQuestion(
            question_text=data["question"].strip(),
            answer_text=data["answer"].strip(),
            category=category.strip(),
            difficulty=normalize_difficulty(data.get("difficulty")),
        )


_default_parser: Optional[ResponseParser] = None


def parse_response(raw_text: Any) -> GeneratedQuestion:
    """Parse model output with a shared default parser."""
    global _default_parser
    if _default_parser is None:
        _default_parser = ResponseParser()
    return _default_parser.parse(raw_text)
