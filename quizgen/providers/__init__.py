"""Text generation provider integrations."""

from .base import BaseTextProvider, GenerationConfig, RetryConfig
from .gemini_provider import GeminiProvider

__all__ = ["BaseTextProvider", "GeminiProvider", "GenerationConfig", "RetryConfig"]
