"""Distractor synthesis for multiple-choice questions.

A second generation pass asks the model for plausible wrong answers. The
pass is best-effort: failures of any kind, and short results, are filled
from a local heuristic so the requested number of distractors is always
returned, even fully offline.
"""

import logging
import random
import re
from typing import List, Optional, Sequence

from ..infrastructure.error_classifier import GenerationError
from ..models import DifficultyLevel, GeneratedQuestion
from ..providers.base import BaseTextProvider, GenerationConfig
from ..utils.text_utils import split_answer_lines
from .prompts import build_distractor_prompt

logger = logging.getLogger(__name__)

# Slightly less adventurous than question generation
DISTRACTOR_GENERATION_CONFIG = GenerationConfig(temperature=0.8, top_k=40, top_p=0.9)

_INTEGER_ANSWER = re.compile(r"^\d+$")
_CAPITALIZED_ANSWER = re.compile(r"^[A-Z]")


def option_label(index: int) -> str:
    """Spreadsheet-style label for a zero-based index: A..Z, AA, AB, ..."""
    label = ""
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        label = chr(ord("A") + remainder) + label
    return label


def generate_fallback_distractors(
    correct_answer: str, count: int, start: int = 0
) -> List[str]:
    """Produce wrong answers without the network.

    Integer answers yield nearby numbers; capitalized answers (names,
    places) yield "Alternative A", "Alternative B", ...; anything else
    yields "Option A", "Option B", ...

    Args:
        correct_answer: The correct answer
        count: How many distractors to produce
        start: Offset for labels and numeric steps, so a backfill does not
            repeat entries produced earlier

    Returns:
        Exactly ``count`` non-empty strings
    """
    answer = (correct_answer or "").strip()
    distractors: List[str] = []

    for i in range(start, start + max(0, count)):
        if _INTEGER_ANSWER.match(answer):
            distractors.append(str(int(answer) + (i + 1) * 10))
        elif _CAPITALIZED_ANSWER.match(answer):
            distractors.append(f"Alternative {option_label(i)}")
        else:
            distractors.append(f"Option {option_label(i)}")

    return distractors


def parse_distractors(
    response: str, expected_count: int, correct_answer: str = ""
) -> List[str]:
    """Extract distractors from a list-style completion.

    Args:
        response: Raw completion text
        expected_count: Maximum number of entries to keep
        correct_answer: Entries equal to this (case-insensitive) are dropped

    Returns:
        At most ``expected_count`` unique entries
    """
    correct = correct_answer.strip().lower()
    seen = set()
    distractors: List[str] = []

    for line in split_answer_lines(response):
        key = line.lower()
        if key == correct or key in seen:
            continue
        seen.add(key)
        distractors.append(line)
        if len(distractors) >= expected_count:
            break

    return distractors


class DistractorSynthesizer:
    """Generates wrong answers with the model, backed by a heuristic."""

    def __init__(
        self,
        provider: Optional[BaseTextProvider] = None,
        config: GenerationConfig = DISTRACTOR_GENERATION_CONFIG,
    ):
        """
        Initialize the synthesizer.

        Args:
            provider: Text provider; None means heuristic-only
            config: Sampling parameters for the distractor pass
        """
        self.provider = provider
        self.config = config

    async def synthesize_distractors(
        self,
        question: str,
        correct_answer: str,
        count: int,
        difficulty: DifficultyLevel = DifficultyLevel.MEDIUM,
    ) -> List[str]:
        """
        Produce exactly ``count`` wrong answers.

        Args:
            question: The question text
            correct_answer: The correct answer
            count: Number of distractors wanted
            difficulty: How close the wrong answers should be

        Returns:
            Exactly ``count`` non-empty strings
        """
        if count <= 0:
            return []

        distractors: List[str] = []
        if self.provider is not None and self.provider.has_credential():
            distractors = await self._generate(question, correct_answer, count, difficulty)
        else:
            logger.debug("No provider credential, using heuristic distractors")

        if len(distractors) < count:
            missing = count - len(distractors)
            logger.info(f"Backfilling {missing} distractors with heuristic fallback")
            backfill = self._backfill(correct_answer, distractors, missing)
            distractors = distractors + backfill

        return distractors[:count]

    async def _generate(
        self,
        question: str,
        correct_answer: str,
        count: int,
        difficulty: DifficultyLevel,
    ) -> List[str]:
        prompt = build_distractor_prompt(question, correct_answer, count, difficulty)
        try:
            # Follows a successful question call, so connectivity is not re-probed
            response = await self.provider.generate(
                prompt, config=self.config, check_ready=False
            )
        except GenerationError as e:
            logger.warning(
                f"Distractor generation failed ({e.category.value}), using fallback"
            )
            return []
        return parse_distractors(response, count, correct_answer)

    @staticmethod
    def _backfill(
        correct_answer: str, existing: Sequence[str], missing: int
    ) -> List[str]:
        taken = {entry.lower() for entry in existing}
        taken.add(correct_answer.strip().lower())

        backfill: List[str] = []
        offset = 0
        while len(backfill) < missing:
            for candidate in generate_fallback_distractors(
                correct_answer, missing, start=offset
            ):
                if candidate.lower() not in taken and len(backfill) < missing:
                    taken.add(candidate.lower())
                    backfill.append(candidate)
            offset += missing
        return backfill


def assemble_multiple_choice(
    question: GeneratedQuestion,
    distractors: Sequence[str],
    rng: Optional[random.Random] = None,
) -> GeneratedQuestion:
    """
    Combine the answer and distractors into shuffled options.

    The answer's position after the shuffle is stored as
    ``correct_option_index``.

    Args:
        question: Question carrying the correct answer
        distractors: Wrong answers
        rng: Random source for the shuffle

    Returns:
        Copy of ``question`` with ``options`` and ``correct_option_index`` set
    """
    rng = rng or random.Random()
    options = [question.answer_text, *distractors]
    order = list(range(len(options)))
    rng.shuffle(order)

    shuffled = [options[i] for i in order]
    correct_index = order.index(0)

    return GeneratedQuestion(
        **question.model_dump(exclude={"options", "correct_option_index"}),
        options=shuffled,
        correct_option_index=correct_index,
    )
