"""Pytest configuration and shared fixtures for quizgen tests."""

import json
from typing import Callable, List, Optional

import httpx
import pytest

from quizgen.infrastructure.connectivity import always_online
from quizgen.infrastructure.error_classifier import offline_error
from quizgen.providers.base import (
    BaseTextProvider,
    GenerationConfig,
    RetryConfig,
    reset_retry_metrics,
)
from quizgen.providers.gemini_provider import GeminiProvider

VALID_API_KEY = "AIzaSyTestKey0123456789abcdefghijklmno"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested sleeps and advances a FakeClock by the same amount."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.calls: List[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


def build_question_json(
    question: str = "What is the tallest mountain in Europe?",
    answer: str = "Mount Elbrus",
    category: str = "Geography",
    difficulty: str = "medium",
) -> str:
    """Serialize a well-formed question record."""
    return json.dumps(
        {
            "question": question,
            "answer": answer,
            "category": category,
            "difficulty": difficulty,
        }
    )


class ScriptedProvider(BaseTextProvider):
    """Provider double that replays queued responses and records prompts.

    Queued exceptions are raised instead of returned. When the queue runs
    dry, a fresh numbered question is generated for every call.
    """

    def __init__(self, responses=None, api_key: Optional[str] = VALID_API_KEY, online=True):
        super().__init__(api_key=api_key, model="scripted-model")
        self.responses = list(responses or [])
        self.prompts: List[str] = []
        self.configs: List[Optional[GenerationConfig]] = []
        self.online = online
        self.closed = False

    def has_credential(self) -> bool:
        return bool(self.api_key)

    def is_available(self) -> bool:
        return self.has_credential() and self.online

    def ensure_ready(self) -> str:
        if not self.online:
            raise offline_error(self.get_provider_name())
        return super().ensure_ready()

    async def generate(self, prompt, config=None, on_status=None, check_ready=True) -> str:
        self.prompts.append(prompt)
        self.configs.append(config)
        if not self.responses:
            return build_question_json(
                question=f"Which generated question is number {len(self.prompts)}?",
                answer=f"Answer {len(self.prompts)}",
            )
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset process-wide retry metrics around each test."""
    reset_retry_metrics()
    yield
    reset_retry_metrics()


@pytest.fixture
def api_key() -> str:
    """Fixture providing a well-formed API key."""
    return VALID_API_KEY


@pytest.fixture
def fake_clock() -> FakeClock:
    """Fixture providing a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def fake_sleep(fake_clock) -> FakeSleep:
    """Fixture providing a sleep that advances the fake clock."""
    return FakeSleep(fake_clock)


@pytest.fixture
def question_json() -> Callable[..., str]:
    """Fixture providing the question record serializer."""
    return build_question_json


@pytest.fixture
def gemini_body() -> Callable[[str], dict]:
    """Fixture building a successful generateContent response body."""

    def build(text: str) -> dict:
        return {"candidates": [{"content": {"parts": [{"text": text}]}}]}

    return build


@pytest.fixture
def scripted_provider() -> Callable[..., ScriptedProvider]:
    """Factory fixture for ScriptedProvider."""
    return ScriptedProvider


@pytest.fixture
def make_provider(fake_sleep) -> Callable[..., GeminiProvider]:
    """Factory for a GeminiProvider backed by an httpx.MockTransport."""

    def factory(handler, api_key: Optional[str] = VALID_API_KEY, **kwargs) -> GeminiProvider:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        kwargs.setdefault("is_online", always_online)
        kwargs.setdefault("sleep", fake_sleep)
        kwargs.setdefault(
            "retry_config", RetryConfig(max_retries=3, base_delay=4.0, max_delay=30.0)
        )
        return GeminiProvider(
            api_key=api_key,
            model="gemini-1.5-flash",
            base_url="https://generativelanguage.test/v1beta",
            http_client=client,
            **kwargs,
        )

    return factory
