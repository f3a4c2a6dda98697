"""Base class and retry helpers for text generation providers."""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from ..config import settings
from ..infrastructure.error_classifier import (
    ClassifiedError,
    ErrorClassifier,
    GenerationError,
    missing_credential_error,
)
from ..models import StatusUpdate

logger = logging.getLogger(__name__)

# Shortest wait between throttle retries, in seconds
MIN_RETRY_DELAY = 1.0

StatusCallback = Callable[[StatusUpdate], None]


class GenerationConfig(BaseModel):
    """Sampling parameters sent with every request.

    These are tuned for variety rather than correctness; changing them does
    not affect the response contract.
    """

    temperature: float = Field(0.9, ge=0.0, le=2.0)
    top_k: int = Field(40, ge=1)
    top_p: float = Field(0.95, gt=0.0, le=1.0)
    max_output_tokens: int = Field(1024, ge=1)


class RetryConfig:
    """Retry policy for throttled requests.

    Attributes:
        max_retries: Retries after the first attempt (at least 1)
        base_delay: Cool-down before the first retry, in seconds
        max_delay: Upper bound for any single cool-down
        exponential_base: Growth factor between consecutive cool-downs
        jitter: Random spread as a fraction of the delay (0 disables)
    """

    def __init__(
        self,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        exponential_base: float = 2.0,
        jitter: float = 0.0,
    ):
        self.max_retries = max(
            1, max_retries if max_retries is not None else settings.max_throttle_retries
        )
        self.base_delay = (
            base_delay if base_delay is not None else settings.throttle_cooldown_seconds
        )
        self.max_delay = (
            max_delay if max_delay is not None else settings.max_throttle_delay_seconds
        )
        self.exponential_base = exponential_base
        self.jitter = jitter


def calculate_backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: float = 0.0,
) -> float:
    """Calculate the cool-down before retry number ``attempt`` (0-based).

    Args:
        attempt: Zero-based retry attempt
        base_delay: Delay for the first retry
        max_delay: Cap applied before jitter
        exponential_base: Growth factor per attempt
        jitter: Random spread as a fraction of the delay

    Returns:
        Delay in seconds, never below MIN_RETRY_DELAY
    """
    delay = min(base_delay * (exponential_base**attempt), max_delay)
    if jitter > 0:
        delay += delay * random.uniform(-jitter, jitter)
    return max(MIN_RETRY_DELAY, delay)


class RetryMetrics:
    """Process-wide counters for throttle retries."""

    def __init__(self) -> None:
        self.total_retries = 0
        self.successful_retries = 0
        self.exhausted_retries = 0
        self.retries_by_provider: Dict[str, int] = {}

    def record_retry(self, provider: str, success: bool) -> None:
        """Record one retry attempt and whether it succeeded."""
        self.total_retries += 1
        if success:
            self.successful_retries += 1
        self.retries_by_provider[provider] = (
            self.retries_by_provider.get(provider, 0) + 1
        )

    def record_exhausted(self, provider: str) -> None:
        """Record a request that ran out of retries."""
        self.exhausted_retries += 1
        self.retries_by_provider.setdefault(provider, 0)

    def get_summary(self) -> Dict[str, Any]:
        """Get a serializable summary of the counters."""
        success_rate = (
            self.successful_retries / self.total_retries
            if self.total_retries
            else 0.0
        )
        return {
            "total_retries": self.total_retries,
            "successful_retries": self.successful_retries,
            "exhausted_retries": self.exhausted_retries,
            "success_rate": success_rate,
            "retries_by_provider": dict(self.retries_by_provider),
        }


_retry_metrics: Optional[RetryMetrics] = None


def get_retry_metrics() -> RetryMetrics:
    """Get the process-wide retry metrics instance."""
    global _retry_metrics
    if _retry_metrics is None:
        _retry_metrics = RetryMetrics()
    return _retry_metrics


def reset_retry_metrics() -> None:
    """Replace the retry metrics with a fresh instance."""
    global _retry_metrics
    _retry_metrics = RetryMetrics()


class BaseTextProvider(ABC):
    """Abstract base class for text generation provider integrations."""

    def __init__(self, api_key: Optional[str], model: str):
        """
        Initialize the provider.

        Args:
            api_key: API key for the provider (may be None when unconfigured)
            model: Model identifier to use
        """
        self.api_key = api_key
        self.model = model

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
        on_status: Optional[StatusCallback] = None,
        check_ready: bool = True,
    ) -> str:
        """
        Generate raw text for a prompt.

        Args:
            prompt: The prompt to send to the model
            config: Sampling parameters (provider defaults when None)
            on_status: Optional callback receiving progress updates
            check_ready: Verify preconditions first; callers that have just
                awaited ``ensure_ready_async`` pass False

        Returns:
            The generated text

        Raises:
            GenerationError: If the request cannot be completed
        """

    @abstractmethod
    def has_credential(self) -> bool:
        """Whether an API key is configured."""

    def is_available(self) -> bool:
        """Whether the provider can currently be used."""
        return self.has_credential()

    def ensure_ready(self) -> str:
        """
        Verify preconditions for issuing a request.

        Returns:
            The API key

        Raises:
            GenerationError: If no credential is configured
        """
        if not self.api_key:
            raise missing_credential_error(self.get_provider_name())
        return self.api_key

    async def ensure_ready_async(self) -> str:
        """Run ``ensure_ready`` in a worker thread.

        Precondition checks may block on DNS, so async callers must not run
        them on the event loop.
        """
        return await asyncio.to_thread(self.ensure_ready)

    async def aclose(self) -> None:
        """Release network resources held by the provider."""

    def get_provider_name(self) -> str:
        """
        Get the name of this provider.

        Returns:
            Provider name (e.g., "gemini")
        """
        return self.__class__.__name__.replace("Provider", "").lower()

    def _handle_api_error(self, error: BaseException) -> GenerationError:
        """Classify and wrap a transport error.

        Args:
            error: The exception that was raised

        Returns:
            GenerationError with classified error
        """
        classified: ClassifiedError = ErrorClassifier.classify_exception(
            error=error,
            provider=self.get_provider_name(),
        )
        return GenerationError(
            classified_error=classified,
            original_exception=error,
        )
