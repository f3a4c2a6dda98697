"""Tests for the question generation orchestrator."""

import asyncio
import random

import httpx
import pytest

from quizgen.generation.fallback_pool import FallbackPool
from quizgen.generation.generator import GenerationComplete, QuestionGenerator
from quizgen.generation.parser import ResponseParser
from quizgen.infrastructure.error_classifier import (
    ErrorCategory,
    ErrorClassifier,
    GenerationError,
)
from quizgen.infrastructure.rate_limiter import RateLimitConfig, RateLimiter
from quizgen.logging_config import generation_id_context
from quizgen.models import (
    DifficultyLevel,
    GenerationParameters,
    SessionQuestion,
    StatusUpdate,
)

UNLIMITED = RateLimitConfig(max_requests=1000, window_seconds=60, min_interval_seconds=0)


@pytest.fixture
def make_generator(fake_clock, fake_sleep):
    """Factory for a generator wired to fakes."""

    def factory(provider, config: RateLimitConfig = UNLIMITED, **kwargs):
        kwargs.setdefault("rate_limiter", RateLimiter(config, clock=fake_clock))
        kwargs.setdefault("parser", ResponseParser(FallbackPool(rng=random.Random(0))))
        kwargs.setdefault("sleep", fake_sleep)
        kwargs.setdefault("rng", random.Random(42))
        return QuestionGenerator(provider=provider, **kwargs)

    return factory


@pytest.fixture
def blocking_provider(scripted_provider):
    """Provider whose call hangs after reporting progress."""

    class BlockingProvider(scripted_provider):
        def __init__(self):
            super().__init__()
            self.cancelled = False

        async def generate(self, prompt, config=None, on_status=None, check_ready=True):
            self.prompts.append(prompt)
            if on_status:
                on_status(StatusUpdate(message="Contacting AI service..."))
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
            return ""

    return BlockingProvider()


class TestGenerateQuestion:
    """Tests for QuestionGenerator.generate_question."""

    @pytest.mark.asyncio
    async def test_happy_path(self, make_generator, scripted_provider, question_json):
        """Test a single generation end to end."""
        provider = scripted_provider(responses=[question_json()])
        generator = make_generator(provider)

        question = await generator.generate_question(
            GenerationParameters(difficulty=DifficultyLevel.HARD, category="Geography")
        )

        assert question.answer_text == "Mount Elbrus"
        assert question.options is None
        assert question.is_fallback is False
        assert "category: Geography" in provider.prompts[0]
        assert generator.rate_limiter.state.requests_in_window == 1
        assert generator.session_questions == [
            SessionQuestion(
                question_text="What is the tallest mountain in Europe?",
                answer_text="Mount Elbrus",
            )
        ]

    @pytest.mark.asyncio
    async def test_default_parameters(self, make_generator, scripted_provider):
        """Test that omitted parameters mean a random medium English question."""
        provider = scripted_provider()
        generator = make_generator(provider)

        await generator.generate_question()

        assert "Choose any widely-known general knowledge topic" in provider.prompts[0]
        assert '"difficulty": "medium"' in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_malformed_response_yields_fallback(self, make_generator, scripted_provider):
        """Test that parse failures are absorbed by the fallback pool."""
        generator = make_generator(scripted_provider(responses=["I cannot help with that."]))

        question = await generator.generate_question()

        assert question.is_fallback is True
        assert len(generator.session_questions) == 1

    @pytest.mark.asyncio
    async def test_generation_id_scoped_to_call(self, make_generator, scripted_provider):
        """Test that the log correlation id is cleared afterwards."""
        generator = make_generator(scripted_provider())

        await generator.generate_question()

        assert generation_id_context.get() is None


class TestSessionHistory:
    """Tests for duplicate avoidance within a session."""

    @pytest.mark.asyncio
    async def test_prompt_lists_last_ten(self, make_generator, scripted_provider):
        """Test that the 12th prompt lists questions 2 through 11 only."""
        provider = scripted_provider()
        generator = make_generator(provider)

        for _ in range(12):
            await generator.generate_question()

        twelfth = provider.prompts[11]
        assert "Which generated question is number 1?" not in twelfth
        for n in range(2, 12):
            assert f"Which generated question is number {n}?" in twelfth
        assert len(generator.session_questions) == 12

    @pytest.mark.asyncio
    async def test_caller_history_merged(self, make_generator, scripted_provider):
        """Test that caller-supplied questions are also avoided."""
        provider = scripted_provider()
        generator = make_generator(provider)
        await generator.generate_question()

        params = GenerationParameters(
            previous_questions=[
                SessionQuestion(question_text="Who painted the Mona Lisa?"),
                SessionQuestion(question_text="Which generated question is number 1?"),
            ]
        )
        await generator.generate_question(params)

        prompt = provider.prompts[1]
        assert "1. Who painted the Mona Lisa?" in prompt
        assert prompt.count("Which generated question is number 1?") == 1

    @pytest.mark.asyncio
    async def test_custom_window(self, make_generator, scripted_provider):
        """Test a smaller recent-question window."""
        provider = scripted_provider()
        generator = make_generator(provider, recent_window=2)

        for _ in range(4):
            await generator.generate_question()

        assert "number 1?" not in provider.prompts[3]
        assert "number 2?" in provider.prompts[3]
        assert "number 3?" in provider.prompts[3]

    @pytest.mark.asyncio
    async def test_reset_session(self, make_generator, scripted_provider):
        """Test that resetting forgets the history."""
        provider = scripted_provider()
        generator = make_generator(provider)
        await generator.generate_question()

        generator.reset_session()
        await generator.generate_question()

        assert generator.session_questions[0].question_text.endswith("number 2?")
        assert "Do NOT repeat" not in provider.prompts[1]


class TestRateLimitWait:
    """Tests for waiting on the local rate limiter."""

    @pytest.mark.asyncio
    async def test_waits_with_countdown(self, make_generator, scripted_provider, fake_sleep):
        """Test that a back-to-back request waits 4 seconds with updates."""
        generator = make_generator(scripted_provider(), config=RateLimitConfig())
        await generator.generate_question()

        updates = []
        await generator.generate_question(on_status_update=updates.append)

        assert fake_sleep.calls == [1, 1, 1, 1]
        assert [u.message for u in updates] == [
            "Please wait 4 seconds before generating another question...",
            "Please wait 3 seconds before generating another question...",
            "Please wait 2 seconds before generating another question...",
            "Please wait 1 second before generating another question...",
            "Generating your question...",
        ]
        assert [u.seconds_remaining for u in updates[:4]] == [4, 3, 2, 1]
        assert all(u.is_waiting for u in updates[:4])
        assert updates[-1].is_waiting is False

    @pytest.mark.asyncio
    async def test_no_wait_when_not_limited(self, make_generator, scripted_provider, fake_sleep):
        """Test that an unlimited request starts immediately."""
        updates = []
        generator = make_generator(scripted_provider(), config=RateLimitConfig())

        await generator.generate_question(on_status_update=updates.append)

        assert fake_sleep.calls == []
        assert updates == []

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_spaced(self, make_generator, scripted_provider, fake_sleep):
        """Test that concurrent calls are admitted one at a time."""
        generator = make_generator(scripted_provider(), config=RateLimitConfig())

        first, second = await asyncio.gather(
            generator.generate_question(), generator.generate_question()
        )

        assert first.id != second.id
        assert fake_sleep.calls == [1, 1, 1, 1]
        assert generator.rate_limiter.state.requests_in_window == 2

    @pytest.mark.asyncio
    async def test_shared_limiter(self, fake_clock, fake_sleep, scripted_provider):
        """Test that generators sharing a limiter share quota."""
        limiter = RateLimiter(RateLimitConfig(), clock=fake_clock)
        first = QuestionGenerator(scripted_provider(), rate_limiter=limiter, sleep=fake_sleep)
        second = QuestionGenerator(scripted_provider(), rate_limiter=limiter, sleep=fake_sleep)

        await first.generate_question()
        await second.generate_question()

        assert fake_sleep.calls == [1, 1, 1, 1]
        assert limiter.state.requests_in_window == 2


class TestFailures:
    """Tests for error propagation."""

    @pytest.mark.asyncio
    async def test_offline_before_recording(self, make_generator, scripted_provider):
        """Test that precondition failures do not consume quota."""
        provider = scripted_provider(online=False)
        generator = make_generator(provider)

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate_question()

        assert exc_info.value.category == ErrorCategory.UNAVAILABLE
        assert generator.rate_limiter.state.requests_in_window == 0
        assert provider.prompts == []

    @pytest.mark.asyncio
    async def test_missing_credential(self, make_generator, scripted_provider):
        """Test that a missing key surfaces as MISCONFIGURED."""
        generator = make_generator(scripted_provider(api_key=None))

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate_question()

        assert exc_info.value.category == ErrorCategory.MISCONFIGURED

    @pytest.mark.asyncio
    async def test_failed_call_still_counts(self, make_generator, scripted_provider):
        """Test that a request is recorded before the call is made."""
        error = GenerationError(ErrorClassifier.classify_status(503, "scripted"))
        generator = make_generator(scripted_provider(responses=[error]))

        with pytest.raises(GenerationError):
            await generator.generate_question()

        assert generator.rate_limiter.state.requests_in_window == 1
        assert generator.session_questions == []
        assert generation_id_context.get() is None

    @pytest.mark.asyncio
    async def test_connectivity_probed_once(
        self, make_generator, make_provider, gemini_body, question_json
    ):
        """Test that one generation, distractors included, probes the network once."""
        bodies = [
            gemini_body(question_json(answer="Elbrus")),
            gemini_body("Mont Blanc\nDufourspitze"),
        ]
        lookups = []
        provider = make_provider(
            lambda request: httpx.Response(200, json=bodies.pop(0)),
            is_online=lambda: lookups.append(1) or True,
        )
        generator = make_generator(provider)

        question = await generator.generate_question(multiple_choice=True, options_count=3)

        assert sorted(question.options) == ["Dufourspitze", "Elbrus", "Mont Blanc"]
        assert len(lookups) == 1


class TestMultipleChoice:
    """Tests for multiple-choice generation."""

    @pytest.mark.asyncio
    async def test_options_assembled(self, make_generator, scripted_provider, question_json):
        """Test that distractors are generated and shuffled in."""
        provider = scripted_provider(
            responses=[
                question_json(question="What is the capital of France?", answer="Paris"),
                "Lyon\nMarseille\nNice",
            ]
        )
        generator = make_generator(provider)

        question = await generator.generate_question(multiple_choice=True, options_count=4)

        assert sorted(question.options) == ["Lyon", "Marseille", "Nice", "Paris"]
        assert question.options[question.correct_option_index] == "Paris"
        assert len(provider.prompts) == 2
        assert generator.rate_limiter.state.requests_in_window == 1

    @pytest.mark.asyncio
    async def test_distractor_failure_backfilled(self, make_generator, scripted_provider, question_json):
        """Test that a failed distractor pass still yields all options."""
        throttled = GenerationError(ErrorClassifier.classify_status(429, "scripted"))
        provider = scripted_provider(responses=[question_json(answer="Elbrus"), throttled])
        generator = make_generator(provider)

        question = await generator.generate_question(multiple_choice=True, options_count=6)

        assert len(question.options) == 6
        assert question.options[question.correct_option_index] == "Elbrus"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("options_count", [1, 21])
    async def test_options_count_range(self, make_generator, scripted_provider, options_count):
        """Test that out-of-range option counts are rejected up front."""
        provider = scripted_provider()
        generator = make_generator(provider)

        with pytest.raises(ValueError):
            await generator.generate_question(multiple_choice=True, options_count=options_count)

        assert provider.prompts == []


class TestStreamGeneration:
    """Tests for QuestionGenerator.stream_generation."""

    @pytest.mark.asyncio
    async def test_events_end_with_completion(self, make_generator, scripted_provider):
        """Test that updates are followed by exactly one completion."""
        generator = make_generator(scripted_provider(), config=RateLimitConfig())
        await generator.generate_question()

        events = [event async for event in generator.stream_generation()]

        assert all(isinstance(e, StatusUpdate) for e in events[:-1])
        assert isinstance(events[-1], GenerationComplete)
        assert [e.seconds_remaining for e in events[:4]] == [4, 3, 2, 1]
        assert events[-2].message == "Generating your question..."
        assert events[-1].question.question_text.endswith("number 2?")

    @pytest.mark.asyncio
    async def test_error_propagates(self, make_generator, scripted_provider):
        """Test that generation errors surface from the iterator."""
        generator = make_generator(scripted_provider(online=False))

        with pytest.raises(GenerationError):
            async for _ in generator.stream_generation():
                pass

    @pytest.mark.asyncio
    async def test_closing_cancels_call(self, make_generator, blocking_provider):
        """Test that closing the stream cancels an in-flight request."""
        generator = make_generator(blocking_provider)

        stream = generator.stream_generation()
        first = await stream.__anext__()
        await stream.aclose()

        assert first.message == "Contacting AI service..."
        assert blocking_provider.cancelled is True
        assert generator.session_questions == []

    @pytest.mark.asyncio
    async def test_closing_cancels_wait(self, fake_clock, scripted_provider):
        """Test that closing during a rate-limit wait abandons it."""
        provider = scripted_provider()
        generator = QuestionGenerator(
            provider,
            rate_limiter=RateLimiter(RateLimitConfig(), clock=fake_clock),
        )
        generator.rate_limiter.record_request()

        stream = generator.stream_generation()
        first = await stream.__anext__()
        await stream.aclose()

        assert first.is_waiting is True
        assert first.seconds_remaining == 4
        assert provider.prompts == []
        assert generator.rate_limiter.state.requests_in_window == 1


class TestStatusQueries:
    """Tests for availability and quota queries."""

    def test_is_available(self, make_generator, scripted_provider):
        """Test availability follows the provider."""
        assert make_generator(scripted_provider()).is_available() is True
        assert make_generator(scripted_provider(online=False)).is_available() is False

    @pytest.mark.asyncio
    async def test_quota_status(self, make_generator, scripted_provider):
        """Test the quota summary after one request."""
        generator = make_generator(scripted_provider(), config=RateLimitConfig())
        await generator.generate_question()

        status = generator.get_quota_status()

        assert status.requests_remaining == 14
        assert status.seconds_until_reset == 60
        assert status.near_limit is False
