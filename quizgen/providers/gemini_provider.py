"""Google Gemini provider integration.

Talks to the Gemini ``generateContent`` REST endpoint over httpx. The
provider owns HTTP-level concerns only: preconditions, request shape,
status code mapping, and the bounded retry on throttling responses.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..infrastructure.connectivity import ConnectivityCheck, make_connectivity_check
from ..infrastructure.error_classifier import (
    ErrorClassifier,
    GenerationError,
    empty_generation_error,
    malformed_credential_error,
    missing_credential_error,
    offline_error,
)
from ..infrastructure.rate_limiter import Sleep, countdown
from ..logging_config import mask_secret
from ..models import StatusUpdate
from .base import (
    BaseTextProvider,
    GenerationConfig,
    RetryConfig,
    StatusCallback,
    calculate_backoff_delay,
    get_retry_metrics,
)

logger = logging.getLogger(__name__)

# Keys shorter than this cannot be valid Gemini keys
MIN_API_KEY_LENGTH = 20

HTTP_STATUS_TOO_MANY_REQUESTS = 429


def _seconds_label(seconds: int) -> str:
    return "second" if seconds == 1 else "seconds"


class GeminiProvider(BaseTextProvider):
    """Google Gemini integration for question and distractor generation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_config: Optional[RetryConfig] = None,
        default_config: Optional[GenerationConfig] = None,
        is_online: Optional[ConnectivityCheck] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize Gemini provider.

        Args:
            api_key: Gemini API key (default: settings.gemini_api_key)
            model: Model to use (default: settings.gemini_model)
            base_url: API base URL (default: settings.gemini_base_url)
            timeout: HTTP timeout in seconds
            retry_config: Throttle retry policy
            default_config: Sampling parameters used when none are passed
            is_online: Network reachability check
            http_client: Pre-built client (the provider will not close it)
            sleep: Awaitable sleep used for cool-downs
        """
        super().__init__(
            api_key if api_key is not None else settings.gemini_api_key,
            model or settings.gemini_model,
        )
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.retry_config = retry_config or RetryConfig()
        self.default_config = default_config or GenerationConfig()
        self._is_online = is_online or make_connectivity_check(self.base_url)
        self._client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep

        logger.debug(
            f"GeminiProvider initialized (model={self.model}, "
            f"api_key={mask_secret(self.api_key)})"
        )

    @property
    def endpoint(self) -> str:
        """URL of the generateContent endpoint for the configured model."""
        return f"{self.base_url}/models/{self.model}:generateContent"

    def has_credential(self) -> bool:
        """Whether an API key is configured."""
        return bool(self.api_key)

    def is_online(self) -> bool:
        """Whether the service host is reachable."""
        return self._is_online()

    def is_available(self) -> bool:
        """Whether a credential is present and the network is up."""
        return self.has_credential() and self.is_online()

    def ensure_ready(self) -> str:
        """
        Verify preconditions for issuing a request.

        Returns:
            The validated API key

        Raises:
            GenerationError: UNAVAILABLE when offline, MISCONFIGURED when the
                key is missing or malformed
        """
        if not self.is_online():
            raise offline_error(self.get_provider_name())
        return self._validated_key()

    def _validated_key(self) -> str:
        provider = self.get_provider_name()
        if not self.api_key:
            raise missing_credential_error(provider)
        if len(self.api_key) < MIN_API_KEY_LENGTH:
            raise malformed_credential_error(provider)
        return self.api_key

    def build_request_body(
        self, prompt: str, config: Optional[GenerationConfig] = None
    ) -> Dict[str, Any]:
        """
        Build the JSON body for a generateContent call.

        Args:
            prompt: Prompt text
            config: Sampling parameters

        Returns:
            Request body dictionary
        """
        cfg = config or self.default_config
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": cfg.temperature,
                "topK": cfg.top_k,
                "topP": cfg.top_p,
                "maxOutputTokens": cfg.max_output_tokens,
            },
        }

    async def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
        on_status: Optional[StatusCallback] = None,
        check_ready: bool = True,
    ) -> str:
        """
        Generate text using the Gemini API.

        Throttling responses (429) are retried after a cool-down that grows
        exponentially, up to ``retry_config.max_retries`` times. All other
        failures are raised immediately.

        Args:
            prompt: The prompt to send to the model
            config: Sampling parameters
            on_status: Optional callback receiving progress updates
            check_ready: Probe connectivity before the request. The key is
                validated either way.

        Returns:
            Text of the first candidate

        Raises:
            GenerationError: On any unrecoverable failure
        """
        if check_ready:
            api_key = await self.ensure_ready_async()
        else:
            api_key = self._validated_key()
        body = self.build_request_body(prompt, config)
        provider = self.get_provider_name()
        metrics = get_retry_metrics()
        attempt = 0

        if on_status:
            on_status(StatusUpdate(message="Contacting AI service..."))

        while True:
            response = await self._post(body, api_key)

            if response.status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
                if attempt > 0:
                    metrics.record_retry(provider, success=False)
                if attempt >= self.retry_config.max_retries:
                    metrics.record_exhausted(provider)
                    logger.error(
                        f"Throttled by {provider} after {attempt} retries, giving up",
                        extra={"status_code": response.status_code, "attempt": attempt},
                    )
                    raise GenerationError(
                        ErrorClassifier.classify_status(
                            response.status_code, provider
                        )
                    )

                delay = calculate_backoff_delay(
                    attempt=attempt,
                    base_delay=self.retry_config.base_delay,
                    max_delay=self.retry_config.max_delay,
                    exponential_base=self.retry_config.exponential_base,
                    jitter=self.retry_config.jitter,
                )
                logger.warning(
                    f"Throttled by {provider}, retrying in {delay:.1f}s "
                    f"(retry {attempt + 1}/{self.retry_config.max_retries})",
                    extra={"status_code": response.status_code, "attempt": attempt},
                )
                await self._cool_down(delay, on_status)
                attempt += 1
                continue

            if attempt > 0:
                metrics.record_retry(provider, success=response.is_success)

            if not response.is_success:
                classified = ErrorClassifier.classify_status(
                    response.status_code,
                    provider,
                    self._extract_error_message(response),
                )
                logger.error(
                    f"{provider} request failed: {classified.category.value}",
                    extra={"status_code": response.status_code},
                )
                raise GenerationError(classified)

            return self._extract_text(response)

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GeminiProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _post(self, body: Dict[str, Any], api_key: str) -> httpx.Response:
        try:
            return await self._get_client().post(
                self.endpoint,
                json=body,
                headers={
                    "Content-Type": "application/json",
                    "x-goog-api-key": api_key,
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Transport error calling {self.get_provider_name()}: {e}")
            raise self._handle_api_error(e) from e

    async def _cool_down(
        self, delay: float, on_status: Optional[StatusCallback]
    ) -> None:
        seconds = max(1, math.ceil(delay))

        if on_status is None:
            await self._sleep(seconds)
            return

        on_status(
            StatusUpdate(
                message=(
                    f"API rate limit reached. Waiting {seconds} "
                    f"{_seconds_label(seconds)} before retrying..."
                ),
                is_waiting=True,
                seconds_remaining=seconds,
            )
        )
        async for remaining in countdown(seconds, sleep=self._sleep):
            on_status(
                StatusUpdate(
                    message=(
                        f"API rate limit reached. Retrying in {remaining} "
                        f"{_seconds_label(remaining)}..."
                    ),
                    is_waiting=True,
                    seconds_remaining=remaining,
                )
            )
        on_status(StatusUpdate(message="Retrying your request..."))

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> Optional[str]:
        try:
            data = response.json()
        except ValueError:
            return None
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and isinstance(error.get("message"), str):
                return error["message"]
        return None

    def _extract_text(self, response: httpx.Response) -> str:
        provider = self.get_provider_name()
        try:
            data = response.json()
        except ValueError as e:
            raise empty_generation_error(
                provider, "Invalid response format from AI service"
            ) from e

        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not isinstance(candidates, list) or not candidates:
            raise empty_generation_error(
                provider, "No response generated from AI service"
            )

        first = candidates[0] if isinstance(candidates[0], dict) else {}
        content = first.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        text = None
        if isinstance(parts, list) and parts and isinstance(parts[0], dict):
            text = parts[0].get("text")

        if not isinstance(text, str) or not text.strip():
            raise empty_generation_error(
                provider, "Invalid response format from AI service"
            )
        return text
