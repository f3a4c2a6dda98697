"""Tests for difficulty and category normalization."""

import pytest

from quizgen.models import DifficultyLevel
from quizgen.utils.type_mapping import (
    DIFFICULTY_LEVELS,
    is_known_difficulty,
    map_quiz_category,
    normalize_difficulty,
)


class TestNormalizeDifficulty:
    """Tests for normalize_difficulty."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("easy", DifficultyLevel.EASY),
            ("  Beginner ", DifficultyLevel.EASY),
            ("SIMPLE", DifficultyLevel.EASY),
            ("moderate", DifficultyLevel.MEDIUM),
            ("Advanced", DifficultyLevel.HARD),
            ("expert", DifficultyLevel.HARD),
            ("difficult", DifficultyLevel.HARD),
            ("whatever", DifficultyLevel.MEDIUM),
            ("", DifficultyLevel.MEDIUM),
            (None, DifficultyLevel.MEDIUM),
            (3, DifficultyLevel.MEDIUM),
        ],
    )
    def test_mapping(self, raw, expected):
        """Test synonyms and unknown values."""
        assert normalize_difficulty(raw) == expected

    def test_enum_passthrough(self):
        """Test that an enum member is returned unchanged."""
        assert normalize_difficulty(DifficultyLevel.HARD) is DifficultyLevel.HARD

    def test_canonical_levels(self):
        """Test the canonical level list."""
        assert DIFFICULTY_LEVELS == ["easy", "medium", "hard"]


class TestIsKnownDifficulty:
    """Tests for is_known_difficulty."""

    def test_known(self):
        """Test known values in any case."""
        assert is_known_difficulty("Intermediate") is True

    def test_unknown(self):
        """Test unknown and non-string values."""
        assert is_known_difficulty("legendary") is False
        assert is_known_difficulty(None) is False


class TestMapQuizCategory:
    """Tests for map_quiz_category."""

    @pytest.mark.parametrize(
        "category,expected",
        [
            ("general", "General Knowledge"),
            ("history", "History"),
            ("Science", "Science"),
            ("technology", "Technology"),
            ("custom", "General Knowledge"),
            ("astrology", "General Knowledge"),
            ("", "General Knowledge"),
            (None, "General Knowledge"),
        ],
    )
    def test_mapping(self, category, expected):
        """Test editor categories map onto prompt topics."""
        assert map_quiz_category(category) == expected
