"""Shared type mapping utilities for enum value normalization.

This module maps the free-form values produced by the model, and the
values used by the quiz editor, onto the canonical values the pipeline
works with.
"""

import logging
from typing import Dict, Optional

from ..models import DEFAULT_CATEGORY, DifficultyLevel

logger = logging.getLogger(__name__)

# Canonical enum values
DIFFICULTY_LEVELS = [dl.value for dl in DifficultyLevel]

# Synonyms the model commonly returns instead of the requested value
DIFFICULTY_SYNONYMS: Dict[str, DifficultyLevel] = {
    "easy": DifficultyLevel.EASY,
    "simple": DifficultyLevel.EASY,
    "beginner": DifficultyLevel.EASY,
    "medium": DifficultyLevel.MEDIUM,
    "moderate": DifficultyLevel.MEDIUM,
    "intermediate": DifficultyLevel.MEDIUM,
    "hard": DifficultyLevel.HARD,
    "difficult": DifficultyLevel.HARD,
    "expert": DifficultyLevel.HARD,
    "advanced": DifficultyLevel.HARD,
}

# Quiz editor category keys -> topic names used in prompts
QUIZ_CATEGORY_MAPPING: Dict[str, str] = {
    "general": DEFAULT_CATEGORY,
    "sports": "Sports",
    "history": "History",
    "science": "Science",
    "geography": "Geography",
    "entertainment": "Entertainment",
    "literature": "Literature",
    "art": "Art",
    "music": "Music",
    "technology": "Technology",
    "custom": DEFAULT_CATEGORY,
}


def is_known_difficulty(difficulty: Optional[str]) -> bool:
    """Check whether a raw difficulty value has a known mapping.

    Args:
        difficulty: Raw value (any case, surrounding whitespace allowed)

    Returns:
        True when the value is a canonical level or a known synonym
    """
    if not isinstance(difficulty, str):
        return False
    return difficulty.strip().lower() in DIFFICULTY_SYNONYMS


def normalize_difficulty(difficulty: Optional[str]) -> DifficultyLevel:
    """Normalize a raw difficulty string to a canonical level.

    Mapping examples::

        "beginner" -> easy
        "EASY"     -> easy
        "Advanced" -> hard
        "whatever" -> medium
        None       -> medium

    Args:
        difficulty: Raw difficulty value from the model

    Returns:
        The canonical DifficultyLevel; unknown values map to medium
    """
    if isinstance(difficulty, DifficultyLevel):
        return difficulty
    if not isinstance(difficulty, str):
        return DifficultyLevel.MEDIUM
    return DIFFICULTY_SYNONYMS.get(difficulty.strip().lower(), DifficultyLevel.MEDIUM)


def map_quiz_category(category: Optional[str]) -> str:
    """Map a quiz editor category key to a prompt topic.

    Args:
        category: Quiz category key such as ``"history"``

    Returns:
        Topic name for prompts; unknown keys map to "General Knowledge"
    """
    if not category:
        return DEFAULT_CATEGORY
    mapped = QUIZ_CATEGORY_MAPPING.get(category.strip().lower())
    if mapped is None:
        logger.debug(f"Unknown quiz category '{category}', using default")
        return DEFAULT_CATEGORY
    return mapped
