"""Quiz question generation service."""

from .generation.generator import GenerationComplete, QuestionGenerator
from .infrastructure.error_classifier import ErrorCategory, GenerationError
from .infrastructure.rate_limiter import RateLimitConfig, RateLimiter
from .models import (
    DifficultyLevel,
    GeneratedQuestion,
    GenerationParameters,
    QuotaStatus,
    SessionQuestion,
    StatusUpdate,
)

__version__ = "0.1.0"

__all__ = [
    "DifficultyLevel",
    "ErrorCategory",
    "GeneratedQuestion",
    "GenerationComplete",
    "GenerationError",
    "GenerationParameters",
    "QuestionGenerator",
    "QuotaStatus",
    "RateLimitConfig",
    "RateLimiter",
    "SessionQuestion",
    "StatusUpdate",
]
