"""Error classification for generative text service failures.

This module defines the typed error taxonomy surfaced to callers of the
generation pipeline and the mapping from HTTP status codes and transport
exceptions onto it. Every error carries a human-readable message that the
UI can render directly.
"""

import re
from enum import Enum
from typing import Optional

import httpx


class ErrorCategory(Enum):
    """Categories of generation errors."""

    UNAVAILABLE = "unavailable"  # No network / service unreachable
    UNAUTHORIZED = "unauthorized"  # Credential rejected by the provider
    MISCONFIGURED = "misconfigured"  # Credential missing or malformed locally
    BAD_REQUEST = "bad_request"  # 400
    FORBIDDEN = "forbidden"  # 403
    NOT_FOUND = "not_found"  # 404
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"  # 5xx
    THROTTLED = "throttled"  # 429 after retries were exhausted
    EMPTY_GENERATION = "empty_generation"  # Well-formed response, no text
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    CRITICAL = "critical"  # Needs configuration changes (credentials)
    HIGH = "high"  # Quota pressure
    MEDIUM = "medium"  # Request or provider problems
    LOW = "low"  # Temporary connectivity issues


class ClassifiedError:
    """A classified generation error with category and severity."""

    def __init__(
        self,
        category: ErrorCategory,
        severity: ErrorSeverity,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        is_retryable: bool = False,
    ):
        """Initialize classified error.

        Args:
            category: Error category
            severity: Error severity level
            provider: Provider name (e.g. "gemini")
            message: Human-readable error message
            status_code: HTTP status code, when the error came from a response
            is_retryable: Whether the error is transient and retryable
        """
        self.category = category
        self.severity = severity
        self.provider = provider
        self.message = message
        self.status_code = status_code
        self.is_retryable = is_retryable

    def __str__(self) -> str:
        """String representation of classified error."""
        return self.message

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "provider": self.provider,
            "message": self.message,
            "status_code": self.status_code,
            "is_retryable": self.is_retryable,
        }


class GenerationError(Exception):
    """Exception raised by the generation pipeline with classification.

    Attributes:
        classified_error: The classified error with category and severity
        original_exception: The underlying exception, if any
    """

    def __init__(
        self,
        classified_error: ClassifiedError,
        original_exception: Optional[BaseException] = None,
    ):
        self.classified_error = classified_error
        self.original_exception = original_exception
        super().__init__(classified_error.message)

    @property
    def category(self) -> ErrorCategory:
        """Shortcut for ``classified_error.category``."""
        return self.classified_error.category

    @property
    def message(self) -> str:
        """Human-readable message suitable for display."""
        return self.classified_error.message


class ErrorClassifier:
    """Classifies HTTP responses and transport failures."""

    # Patterns for network errors raised outside of httpx
    NETWORK_PATTERNS = [
        r"connection.*error",
        r"timeout",
        r"timed out",
        r"network.*(error|unreachable)",
        r"connection.*refused",
        r"connection.*reset",
        r"name or service not known",
        r"dns.*error",
    ]

    @staticmethod
    def classify_status(
        status_code: int,
        provider: str,
        provider_message: Optional[str] = None,
    ) -> ClassifiedError:
        """Classify a non-2xx HTTP status.

        Args:
            status_code: The response status code
            provider: Provider name
            provider_message: Error message from the response body, if any

        Returns:
            ClassifiedError with category and severity
        """
        detail = provider_message or "Unknown API error"

        if status_code == 400:
            return ClassifiedError(
                category=ErrorCategory.BAD_REQUEST,
                severity=ErrorSeverity.MEDIUM,
                provider=provider,
                message=f"Invalid request: {detail}",
                status_code=status_code,
            )

        if status_code == 401:
            return ClassifiedError(
                category=ErrorCategory.UNAUTHORIZED,
                severity=ErrorSeverity.CRITICAL,
                provider=provider,
                message="API key is invalid or expired",
                status_code=status_code,
            )

        if status_code == 403:
            return ClassifiedError(
                category=ErrorCategory.FORBIDDEN,
                severity=ErrorSeverity.CRITICAL,
                provider=provider,
                message="API access forbidden - check your API key permissions",
                status_code=status_code,
            )

        if status_code == 404:
            return ClassifiedError(
                category=ErrorCategory.NOT_FOUND,
                severity=ErrorSeverity.MEDIUM,
                provider=provider,
                message="AI service endpoint not found",
                status_code=status_code,
            )

        if status_code == 429:
            return ClassifiedError(
                category=ErrorCategory.THROTTLED,
                severity=ErrorSeverity.HIGH,
                provider=provider,
                message=(
                    "AI service rate limit reached. "
                    "Please wait a minute and try again."
                ),
                status_code=status_code,
                is_retryable=True,
            )

        if 500 <= status_code <= 599:
            return ClassifiedError(
                category=ErrorCategory.UPSTREAM_UNAVAILABLE,
                severity=ErrorSeverity.MEDIUM,
                provider=provider,
                message="AI service is temporarily unavailable. Please try again.",
                status_code=status_code,
            )

        return ClassifiedError(
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM,
            provider=provider,
            message=f"API error ({status_code}): {detail}",
            status_code=status_code,
        )

    @staticmethod
    def classify_exception(error: BaseException, provider: str) -> ClassifiedError:
        """Classify an exception raised while talking to the provider.

        Args:
            error: The exception that was raised
            provider: Provider name

        Returns:
            ClassifiedError with category and severity
        """
        if isinstance(error, httpx.TransportError) or ErrorClassifier._match_patterns(
            str(error).lower(), ErrorClassifier.NETWORK_PATTERNS
        ):
            return ClassifiedError(
                category=ErrorCategory.UNAVAILABLE,
                severity=ErrorSeverity.LOW,
                provider=provider,
                message=(
                    "Could not reach the AI service. "
                    "Please check your connection and try again."
                ),
            )

        return ClassifiedError(
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM,
            provider=provider,
            message="Failed to generate question. Please try again.",
        )

    @staticmethod
    def _match_patterns(text: str, patterns: list[str]) -> bool:
        """Check if text matches any of the given regex patterns.

        Args:
            text: Text to search
            patterns: List of regex patterns

        Returns:
            True if any pattern matches
        """
        for pattern in patterns:
            if re.search(pattern, text, re.IGNORECASE):
                return True
        return False


def offline_error(provider: str) -> GenerationError:
    """Build the error raised when the device has no network."""
    return GenerationError(
        ClassifiedError(
            category=ErrorCategory.UNAVAILABLE,
            severity=ErrorSeverity.LOW,
            provider=provider,
            message="Internet connection required",
        )
    )


def missing_credential_error(provider: str) -> GenerationError:
    """Build the error raised when no API key is configured."""
    return GenerationError(
        ClassifiedError(
            category=ErrorCategory.MISCONFIGURED,
            severity=ErrorSeverity.CRITICAL,
            provider=provider,
            message="AI service is temporarily unavailable. Please try again later.",
        )
    )


def malformed_credential_error(provider: str) -> GenerationError:
    """Build the error raised when the API key is obviously invalid."""
    return GenerationError(
        ClassifiedError(
            category=ErrorCategory.MISCONFIGURED,
            severity=ErrorSeverity.CRITICAL,
            provider=provider,
            message="Invalid API configuration. Please contact support.",
        )
    )


def empty_generation_error(provider: str, detail: str) -> GenerationError:
    """Build the error raised when the response holds no usable text."""
    return GenerationError(
        ClassifiedError(
            category=ErrorCategory.EMPTY_GENERATION,
            severity=ErrorSeverity.MEDIUM,
            provider=provider,
            message=detail,
        )
    )
